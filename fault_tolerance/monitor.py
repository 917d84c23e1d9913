#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

import logging
import threading

from fault_tolerance.constants import (LOOP_DELAY, POLL_INTERVAL, TaskState, ProtectionState,
                                       SECONDARY_PENDING_STATES)
from fault_tolerance.results import TaskOutcome

logger = logging.getLogger(__name__)


class Poller:
    """
    Polling skeleton shared by task monitoring and vm state waits.

    A timeout of T seconds buys T // loop_delay observations. Between two
    observations the poller waits interval seconds on an event, so a call
    to cancel() ends any ongoing wait right away.
    """
    def __init__(self, interval=POLL_INTERVAL, loop_delay=LOOP_DELAY):
        self._interval = interval
        self._loop_delay = loop_delay
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def budget(self, timeout_secs):
        return int(timeout_secs // self._loop_delay)

    def pause(self, seconds):
        """
        Sleep for the given seconds. Returns False if the poller was cancelled.
        """
        return not self._cancelled.wait(seconds)

    def poll(self, observe, classify, timeout_secs):
        """
        Call observe() until classify() maps the observation to an outcome
        or the budget for timeout_secs runs out.
        classify returns None for observations that mean "keep waiting".
        """
        count = self.budget(timeout_secs)
        while count > 0:
            outcome = classify(observe())
            if outcome is not None:
                return outcome
            if not self.pause(self._interval):
                return TaskOutcome.CANCELLED
            count -= 1
        return TaskOutcome.TIMEOUT


class FtMonitor:
    """
    Waits for vSphere tasks and FT protection state changes.
    None of the methods raise, every problem is logged and
    reported as a TaskOutcome.
    """
    def __init__(self, poller=None):
        self._poller = poller or Poller()

    @property
    def poller(self):
        return self._poller

    def monitor_task(self, task, timeout_secs):
        """
        Monitor a task until it succeeds, fails or the timeout expires.
        """
        if task is None:
            logger.error("Task reference is null")
            return TaskOutcome.MISSING

        def classify(state):
            if state in (TaskState.QUEUED, TaskState.RUNNING):
                logger.info("Task is still running, wait for the task to complete")
                return None
            if state is TaskState.SUCCESS:
                logger.info("Task succeeded")
                return TaskOutcome.SUCCESS
            logger.error(f"Task failed: {task.error_message()}")
            return TaskOutcome.ERROR

        try:
            outcome = self._poller.poll(task.current_state, classify, timeout_secs)
        except Exception as e:
            logger.error(f"Caught an exception while monitoring the task - {e}")
            return TaskOutcome.FAULT
        if outcome is TaskOutcome.TIMEOUT:
            logger.error(f"Task did not complete within {timeout_secs} seconds")
        return outcome

    def wait_for_protected(self, workload, timeout_secs):
        """
        Wait until the FT pair is running, i.e. the secondary vm is up
        and the primary is protected.
        """
        def classify(state):
            if state is ProtectionState.RUNNING:
                logger.info("Secondary VM is running now")
                return TaskOutcome.SUCCESS
            if state in SECONDARY_PENDING_STATES:
                logger.info("Secondary VM is still starting up, wait for the power on to complete")
            else:
                logger.info(f"VM FT state is {state.value}, wait for it to become running")
            return None

        return self._wait_for_state(workload, classify, timeout_secs, "protected")

    def wait_for_failover_started(self, workload, timeout_secs):
        """
        Wait until the FT state turns to starting / needSecondary, which
        means the old primary went away and the secondary took over.
        """
        def classify(state):
            if state in SECONDARY_PENDING_STATES:
                logger.info("Secondary VM is not in running state now")
                return TaskOutcome.SUCCESS
            if state is ProtectionState.RUNNING:
                logger.info("Secondary VM is still in running state, wait for it to go into starting/needSecondary state")
            else:
                logger.info(f"VM FT state is {state.value}, wait for failover to start")
            return None

        return self._wait_for_state(workload, classify, timeout_secs, "failover")

    def _wait_for_state(self, workload, classify, timeout_secs, goal):
        if workload is None:
            logger.error("VirtualMachine reference is null")
            return TaskOutcome.MISSING
        try:
            outcome = self._poller.poll(workload.current_protection_state, classify, timeout_secs)
        except Exception as e:
            logger.error(f"Caught an exception while monitoring the FT secondary VM state - {e}")
            return TaskOutcome.FAULT
        if outcome is TaskOutcome.TIMEOUT:
            logger.error(f"VM {workload.name} did not reach {goal} state within {timeout_secs} seconds")
        return outcome
