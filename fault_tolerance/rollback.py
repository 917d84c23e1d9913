#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

import logging

from fault_tolerance.constants import (PowerState, PROTECTED_STATES, SETTLE_DELAY, STEP_MARKER,
                                       TASK_TIMEOUT)
from fault_tolerance.monitor import FtMonitor
from fault_tolerance.results import Step

logger = logging.getLogger(__name__)


class RollbackGuard:
    """
    Brings the vm back to its original state at the end of a run:
    powered off and without FT. Never raises.
    """
    def __init__(self, monitor=None, task_timeout=TASK_TIMEOUT, settle_delay=SETTLE_DELAY):
        self._monitor = monitor or FtMonitor()
        self._task_timeout = task_timeout
        self._settle_delay = settle_delay

    def restore(self, workload, report=None):
        if workload is None:
            return
        try:
            logger.info(f"{STEP_MARKER} Restore VM State {STEP_MARKER}")
            self._monitor.poller.pause(self._settle_delay)

            if workload.current_power_state() is PowerState.POWERED_ON:
                outcome = self._monitor.monitor_task(workload.power_off(), self._task_timeout)
                self._record(report, Step.ROLLBACK_POWER_OFF, outcome)
                if outcome.succeeded:
                    logger.info("Successfully powered off the VM")
                    self._monitor.poller.pause(self._settle_delay)
                else:
                    logger.error(f"Failed to power off the VM, power off {outcome.value}")

            if workload.current_protection_state() in PROTECTED_STATES:
                outcome = self._monitor.monitor_task(workload.remove_protection(), self._task_timeout)
                self._record(report, Step.ROLLBACK_DISABLE_PROTECTION, outcome)
                if outcome.succeeded:
                    logger.info("Successfully Turned off FT on VM")
                else:
                    logger.error(f"Failed to turn off FT, turn off {outcome.value}")
        except Exception:
            logger.exception("Caught exception while restoring VM state. Please check and restore the state")

    @staticmethod
    def _record(report, step, outcome):
        if report is not None:
            report.record(step, outcome)
