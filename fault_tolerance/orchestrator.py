#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

"""
Drives the FT lifecycle of a single vm:

 - Turn on FT, monitor for secondary vm creation
 - Power on the FT vm, monitor the FT pair protection state
 - Disable the secondary vm
 - Enable the secondary vm, monitor for the FT pair to be protected again
 - Promote the secondary to primary ('Test Failover') and monitor the FT
   pair until a new secondary is running
 - Turn off FT
 - Revert the inventory state: power off the vm and turn off FT
"""

import logging

from dataclasses import dataclass, field
from typing import Optional

from fault_tolerance.constants import (DISABLE_SECONDARY_TIMEOUT, PROTECTED_STATES, SETTLE_DELAY,
                                       STEP_MARKER, TASK_TIMEOUT)
from fault_tolerance.monitor import FtMonitor
from fault_tolerance.results import RunReport, Step, TaskOutcome, Topology
from fault_tolerance.rollback import RollbackGuard
from fault_tolerance.topology import TopologyResolver

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """
    State shared by the steps of one run.
    """
    topology: Topology
    report: RunReport = field(default_factory=RunReport)
    replica: Optional[object] = None
    protection_turned_on: bool = False
    reprotected: bool = False

    @property
    def workload(self):
        return self.topology.workload


class LifecycleOrchestrator:
    """
    Runs the fixed FT step sequence against a resolved topology.

    A failing step skips the steps depending on it. Once FT was turned on,
    turning it off is always attempted.

    require_reprotect_before_promote: skip the test failover when enabling the
    secondary vm again did not bring the pair back to running. Off by default,
    so promote is attempted whenever the secondary vm was disabled.
    """
    def __init__(self, directory, monitor=None, task_timeout=TASK_TIMEOUT,
                 disable_secondary_timeout=DISABLE_SECONDARY_TIMEOUT,
                 require_reprotect_before_promote=False):
        self._directory = directory
        self._monitor = monitor or FtMonitor()
        self._task_timeout = task_timeout
        self._disable_secondary_timeout = disable_secondary_timeout
        self._require_reprotect = require_reprotect_before_promote

    def run(self, topology, report=None):
        ctx = RunContext(topology=topology, report=report if report is not None else RunReport())
        if self.enable_protection(ctx):
            self.exercise_failover(ctx)
        if ctx.protection_turned_on:
            self.disable_protection(ctx)
        return ctx.report

    def enable_protection(self, ctx):
        workload = ctx.workload
        logger.info(f"{STEP_MARKER} Turning on FT on VM: {workload.name} {STEP_MARKER}")
        task = workload.create_replica(ctx.topology.secondary_host)
        if not self._track(ctx, Step.ENABLE_PROTECTION, task):
            logger.error("Failed to Turn on FT")
            return False
        logger.info("Successfully Turned on FT")
        ctx.protection_turned_on = True
        return True

    def exercise_failover(self, ctx):
        """
        Steps between turning FT on and off. Returns as soon as a step
        leaves nothing meaningful to do.
        """
        workload = ctx.workload

        if not self._track(ctx, Step.POWER_ON_PRIMARY, workload.power_on()):
            logger.error("Failed to Power on FT VM")
            return
        logger.info("FT Primary VM successfully powered on")
        logger.info("Now Monitor for its secondary VM")

        if not self._await(ctx, Step.AWAIT_PROTECTED, self._monitor.wait_for_protected):
            logger.error("Failed to Power on Secondary VM")
            return
        logger.info("FT Pair is successfully powered on")
        self._log_ft_state(workload)

        logger.info(f"{STEP_MARKER} Disable Secondary VM of FT VM {workload.name} {STEP_MARKER}")
        ctx.replica = self.discover_replica(ctx)
        if ctx.replica is None:
            logger.error("Could not obtain Secondary VM's reference object")
            return

        task = workload.disable_replica(ctx.replica)
        if not self._track(ctx, Step.DISABLE_REPLICA, task, self._disable_secondary_timeout):
            logger.error("Failed to disable Secondary VM")
            return
        logger.info("Successfully disabled Secondary VM")
        self._log_ft_state(workload)

        self.reenable_replica(ctx)
        self.promote_replica(ctx)

    def discover_replica(self, ctx):
        """
        The secondary vm has the same name as the primary and lives
        on the secondary host.
        """
        secondary_host = ctx.topology.secondary_host
        for candidate in self._directory.list_workloads(secondary_host):
            if candidate.name == ctx.workload.name:
                ctx.report.record(Step.DISCOVER_REPLICA, TaskOutcome.SUCCESS,
                                  f"found on {secondary_host.name}")
                return candidate
        ctx.report.record(Step.DISCOVER_REPLICA, TaskOutcome.MISSING,
                          f"no VM named {ctx.workload.name} on {secondary_host.name}")
        return None

    def reenable_replica(self, ctx):
        workload = ctx.workload
        logger.info(f"{STEP_MARKER} Enable Secondary VM of FT VM {workload.name} {STEP_MARKER}")
        task = workload.enable_replica(ctx.replica, ctx.topology.secondary_host)
        if not self._track(ctx, Step.ENABLE_REPLICA, task):
            logger.error("Failed to Enable Secondary VM")
            return
        if not self._await(ctx, Step.AWAIT_REPROTECTED, self._monitor.wait_for_protected):
            logger.error("Failed to Enable Secondary VM")
            return
        logger.info("Successfully enabled Secondary VM")
        self._log_ft_state(workload)
        ctx.reprotected = True

    def promote_replica(self, ctx):
        workload = ctx.workload
        logger.info(f"{STEP_MARKER} Promote Secondary VM to Primary VM (Test Failover) {STEP_MARKER}")
        if self._require_reprotect and not ctx.reprotected:
            logger.warning("FT pair was not protected again after enabling the Secondary VM, skipping Test Failover")
            ctx.report.record(Step.PROMOTE_REPLICA, TaskOutcome.SKIPPED, "FT pair not protected")
            return

        if not self._track(ctx, Step.PROMOTE_REPLICA, workload.promote_replica(ctx.replica)):
            logger.error("Failed to Promote Secondary VM")
            return
        if not self._await(ctx, Step.AWAIT_FAILOVER_STARTED, self._monitor.wait_for_failover_started):
            logger.error("FT VM state did not enter into NeedSecondary/Starting, after 'Test Failover'")
            return
        logger.info("Now, wait for secondary to come up")
        if not self._await(ctx, Step.AWAIT_FAILOVER_PROTECTED, self._monitor.wait_for_protected):
            logger.error("Failed to Promote Secondary VM")
            return
        logger.info("Successfully Promoted Secondary to Primary VM")
        self._log_ft_state(workload)

    def disable_protection(self, ctx):
        workload = ctx.workload
        logger.info(f"{STEP_MARKER} Turn off FT on VM {STEP_MARKER}")
        try:
            state = workload.current_protection_state()
        except Exception as e:
            logger.error(f"Caught an exception while reading the VM FT state, FT is left on - {e}")
            ctx.report.record(Step.DISABLE_PROTECTION, TaskOutcome.FAULT, str(e))
            return
        if state not in PROTECTED_STATES:
            logger.info(f"VM FT state is {state.value}, nothing to turn off")
            ctx.report.record(Step.DISABLE_PROTECTION, TaskOutcome.SKIPPED, f"FT state {state.value}")
            return
        if self._track(ctx, Step.DISABLE_PROTECTION, workload.remove_protection()):
            logger.info("Successfully Turned off FT on VM")
        else:
            logger.error("Failed to turn off FT")

    def _track(self, ctx, step, task, timeout_secs=None):
        if timeout_secs is None:
            timeout_secs = self._task_timeout
        outcome = self._monitor.monitor_task(task, timeout_secs)
        ctx.report.record(step, outcome)
        return outcome.succeeded

    def _await(self, ctx, step, wait):
        outcome = wait(ctx.workload, self._task_timeout)
        ctx.report.record(step, outcome)
        return outcome.succeeded

    @staticmethod
    def _log_ft_state(workload):
        try:
            logger.info(f"VM FT State: {workload.current_protection_state().value}")
        except Exception as e:
            logger.warning(f"Could not read the VM FT State - {e}")


def perform_ft_ops(directory, cluster_name, workload_name=None, monitor=None,
                   task_timeout=TASK_TIMEOUT, disable_secondary_timeout=DISABLE_SECONDARY_TIMEOUT,
                   settle_delay=SETTLE_DELAY, require_reprotect_before_promote=False):
    """
    Resolve the topology, run the FT lifecycle and always revert the
    inventory state. Never raises, everything is reported in the returned
    RunReport.
    """
    monitor = monitor or FtMonitor()
    report = RunReport()
    workload = None
    try:
        report.resolution = TopologyResolver(directory).resolve(cluster_name, workload_name)
        if not report.resolution.ok:
            return report
        workload = report.resolution.topology.workload
        orchestrator = LifecycleOrchestrator(directory,
                                             monitor=monitor,
                                             task_timeout=task_timeout,
                                             disable_secondary_timeout=disable_secondary_timeout,
                                             require_reprotect_before_promote=require_reprotect_before_promote)
        orchestrator.run(report.resolution.topology, report)
    except Exception as e:
        logger.exception(f"Caught an exception while performing FT Operations on {cluster_name}")
        report.fault = str(e) or type(e).__name__
    finally:
        RollbackGuard(monitor, task_timeout=task_timeout, settle_delay=settle_delay).restore(workload, report)
    return report
