#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************
"""
In-memory stand-ins for the vSphere inventory.

FakeWorkload applies a plausible FT state change for every operation so a
full lifecycle can run against it. Tests override single operations with
`results` (the task returned) or `effects` (the state change applied).
"""

from collections import deque

import pytest

from fault_tolerance.constants import (HostConnectionState, PowerState, ProtectionState,
                                       TaskState)
from fault_tolerance.monitor import FtMonitor, Poller


class FakeTask:
    def __init__(self, *states, error=None):
        self._states = deque(states or (TaskState.SUCCESS,))
        self.error = error
        self.observations = 0

    def current_state(self):
        self.observations += 1
        if len(self._states) > 1:
            return self._states.popleft()
        state = self._states[0]
        if isinstance(state, Exception):
            raise state
        return state

    def error_message(self):
        return self.error


class FakeHost:
    def __init__(self, name, connection_state=HostConnectionState.CONNECTED, workloads=None):
        self.name = name
        self.connection_state = connection_state
        self.workloads = list(workloads or [])

    def __repr__(self):
        return f"FakeHost({self.name})"


class FakeCluster:
    def __init__(self, name, hosts, protection_enabled=True):
        self.name = name
        self.hosts = list(hosts)
        self.protection_enabled = protection_enabled


class FakeWorkload:
    def __init__(self, name, host=None, power_state=PowerState.POWERED_OFF,
                 protection_state=ProtectionState.NOT_CONFIGURED):
        self.name = name
        self.host = host
        self.power_state = power_state
        self.protection_state = protection_state
        self.pending = deque()
        self.operations = []
        self.results = {}
        self.effects = {}
        if host is not None:
            host.workloads.append(self)

    def __repr__(self):
        return f"FakeWorkload({self.name})"

    def current_protection_state(self):
        if self.pending:
            return self.pending.popleft()
        return self.protection_state

    def current_power_state(self):
        return self.power_state

    def observe(self, *states):
        """
        Queue protection states returned before the current one.
        """
        self.pending.extend(states)

    def _operate(self, operation, *args):
        self.operations.append(operation)
        task = self.results.get(operation, FakeTask(TaskState.SUCCESS))
        if task is not None and task._states[-1] is TaskState.SUCCESS:
            effect = self.effects.get(operation, getattr(self, f"_default_{operation}"))
            effect(*args)
        return task

    def create_replica(self, target_host):
        return self._operate("create_replica", target_host)

    def power_on(self):
        return self._operate("power_on")

    def power_off(self):
        return self._operate("power_off")

    def disable_replica(self, replica):
        return self._operate("disable_replica", replica)

    def enable_replica(self, replica, target_host):
        return self._operate("enable_replica", replica, target_host)

    def promote_replica(self, replica):
        return self._operate("promote_replica", replica)

    def remove_protection(self):
        return self._operate("remove_protection")

    def _default_create_replica(self, target_host):
        self.protection_state = ProtectionState.ENABLED
        FakeWorkload(self.name, host=target_host)

    def _default_power_on(self):
        self.power_state = PowerState.POWERED_ON
        if self.protection_state is ProtectionState.ENABLED:
            self.observe(ProtectionState.STARTING)
            self.protection_state = ProtectionState.RUNNING

    def _default_power_off(self):
        self.power_state = PowerState.POWERED_OFF

    def _default_disable_replica(self, replica):
        self.protection_state = ProtectionState.DISABLED

    def _default_enable_replica(self, replica, target_host):
        self.observe(ProtectionState.STARTING)
        self.protection_state = ProtectionState.RUNNING

    def _default_promote_replica(self, replica):
        self.observe(ProtectionState.NEED_SECONDARY, ProtectionState.STARTING)
        self.protection_state = ProtectionState.RUNNING

    def _default_remove_protection(self):
        self.protection_state = ProtectionState.DISABLED


class FakeDirectory:
    def __init__(self, *clusters):
        self.clusters = list(clusters)
        self.member_lookups = 0

    def find_cluster(self, name):
        for cluster in self.clusters:
            if cluster.name == name:
                return cluster
        return None

    def list_members(self, cluster):
        self.member_lookups += 1
        return list(cluster.hosts)

    def list_workloads(self, host):
        return list(host.workloads)


@pytest.fixture
def poller():
    return Poller(interval=0)


@pytest.fixture
def monitor(poller):
    return FtMonitor(poller)


@pytest.fixture
def two_hosts():
    return FakeHost("esx-01"), FakeHost("esx-02")


@pytest.fixture
def inventory(two_hosts):
    """
    HA cluster 'TestCluster' with two connected hosts and vm 'TestVM' on the first.
    """
    primary, secondary = two_hosts
    workload = FakeWorkload("TestVM", host=primary)
    cluster = FakeCluster("TestCluster", [primary, secondary])
    return FakeDirectory(cluster), workload
