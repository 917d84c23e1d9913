#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ResolutionFailure(Enum):
    CLUSTER_NOT_FOUND = "cluster not found"
    PROTECTION_NOT_ENABLED = "HA is not enabled on the cluster"
    INSUFFICIENT_HOSTS = "fewer than 2 connected hosts"
    WORKLOAD_NOT_FOUND = "vm not found"
    NO_WORKLOAD_AVAILABLE = "no vm available"


@dataclass(frozen=True)
class Topology:
    """
    Validated inventory selection for one run: the HA cluster, its connected
    hosts, the vm to protect, the host it runs on and the host that will
    receive the secondary vm.
    """
    cluster: object
    hosts: tuple
    workload: object
    primary_host: object
    secondary_host: object


@dataclass(frozen=True)
class Resolution:
    topology: Optional[Topology] = None
    failure: Optional[ResolutionFailure] = None
    detail: str = ""

    @property
    def ok(self):
        return self.topology is not None

    @classmethod
    def success(cls, topology):
        return cls(topology=topology)

    @classmethod
    def failed(cls, failure, detail=""):
        return cls(failure=failure, detail=detail)


class TaskOutcome(Enum):
    """
    Result of waiting on a task or on a vm state.
    """
    SUCCESS = "succeeded"
    ERROR = "failed"
    TIMEOUT = "timed out"
    MISSING = "reference is null"
    FAULT = "raised an exception"
    CANCELLED = "was cancelled"
    SKIPPED = "skipped"

    @property
    def succeeded(self):
        return self is TaskOutcome.SUCCESS

    @property
    def acceptable(self):
        return self in (TaskOutcome.SUCCESS, TaskOutcome.SKIPPED)


class Step(Enum):
    ENABLE_PROTECTION = "Turn on FT"
    POWER_ON_PRIMARY = "Power on primary VM"
    AWAIT_PROTECTED = "Wait for FT protection"
    DISCOVER_REPLICA = "Find secondary VM"
    DISABLE_REPLICA = "Disable secondary VM"
    ENABLE_REPLICA = "Enable secondary VM"
    AWAIT_REPROTECTED = "Wait for FT protection after enabling secondary"
    PROMOTE_REPLICA = "Promote secondary VM (Test Failover)"
    AWAIT_FAILOVER_STARTED = "Wait for failover to start"
    AWAIT_FAILOVER_PROTECTED = "Wait for FT protection after failover"
    DISABLE_PROTECTION = "Turn off FT"
    ROLLBACK_POWER_OFF = "Rollback: power off VM"
    ROLLBACK_DISABLE_PROTECTION = "Rollback: turn off FT"


ROLLBACK_STEPS = (Step.ROLLBACK_POWER_OFF, Step.ROLLBACK_DISABLE_PROTECTION)


@dataclass(frozen=True)
class StepResult:
    step: Step
    outcome: TaskOutcome
    detail: str = ""

    def __str__(self):
        text = f"{self.step.value} {self.outcome.value}"
        if self.detail:
            text += f": {self.detail}"
        return text


@dataclass
class RunReport:
    """
    What happened during one run. Filled in step by step by the orchestrator
    and the rollback guard, inspected by the launcher to pick the exit code.
    """
    resolution: Optional[Resolution] = None
    steps: List[StepResult] = field(default_factory=list)
    fault: Optional[str] = None

    def record(self, step, outcome, detail=""):
        result = StepResult(step, outcome, detail)
        self.steps.append(result)
        return result

    def outcome_of(self, step):
        """
        Outcome of the last attempt of step, None if it never ran.
        """
        for result in reversed(self.steps):
            if result.step is step:
                return result.outcome
        return None

    @property
    def operations(self):
        return [r for r in self.steps if r.step not in ROLLBACK_STEPS]

    @property
    def rollback(self):
        return [r for r in self.steps if r.step in ROLLBACK_STEPS]

    @property
    def failed_step(self):
        for result in self.operations:
            if not result.outcome.acceptable:
                return result
        return None

    @property
    def succeeded(self):
        if self.resolution is None or not self.resolution.ok:
            return False
        if self.fault is not None:
            return False
        return self.failed_step is None
