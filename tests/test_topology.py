#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

from fault_tolerance.constants import HostConnectionState
from fault_tolerance.results import ResolutionFailure
from fault_tolerance.topology import TopologyResolver

from conftest import FakeCluster, FakeDirectory, FakeHost, FakeWorkload


def test_resolves_first_vm_and_other_host(inventory, two_hosts):
    directory, workload = inventory
    resolution = TopologyResolver(directory).resolve("TestCluster")

    assert resolution.ok
    topology = resolution.topology
    assert topology.cluster.name == "TestCluster"
    assert topology.workload is workload
    assert topology.primary_host is two_hosts[0]
    assert topology.secondary_host is two_hosts[1]
    assert topology.hosts == two_hosts


def test_resolves_named_vm_on_second_host():
    first = FakeHost("esx-01")
    second = FakeHost("esx-02")
    FakeWorkload("Other", host=first)
    wanted = FakeWorkload("TestVM", host=second)
    directory = FakeDirectory(FakeCluster("TestCluster", [first, second]))

    topology = TopologyResolver(directory).resolve("TestCluster", "TestVM").topology

    assert topology.workload is wanted
    assert topology.primary_host is second
    assert topology.secondary_host is first


def test_cluster_not_found(inventory):
    directory, _ = inventory
    resolution = TopologyResolver(directory).resolve("Missing")
    assert not resolution.ok
    assert resolution.failure is ResolutionFailure.CLUSTER_NOT_FOUND


def test_protection_disabled_fails_before_host_lookup(two_hosts):
    directory = FakeDirectory(FakeCluster("TestCluster", two_hosts, protection_enabled=False))
    resolution = TopologyResolver(directory).resolve("TestCluster")
    assert resolution.failure is ResolutionFailure.PROTECTION_NOT_ENABLED
    assert directory.member_lookups == 0


def test_disconnected_hosts_do_not_count():
    hosts = [FakeHost("esx-01"),
             FakeHost("esx-02", HostConnectionState.DISCONNECTED),
             FakeHost("esx-03", HostConnectionState.NOT_RESPONDING)]
    FakeWorkload("TestVM", host=hosts[0])
    directory = FakeDirectory(FakeCluster("TestCluster", hosts))
    resolution = TopologyResolver(directory).resolve("TestCluster")
    assert resolution.failure is ResolutionFailure.INSUFFICIENT_HOSTS


def test_named_vm_not_found(inventory):
    directory, _ = inventory
    resolution = TopologyResolver(directory).resolve("TestCluster", "NoSuchVM")
    assert resolution.failure is ResolutionFailure.WORKLOAD_NOT_FOUND
    assert resolution.detail == "NoSuchVM"


def test_vm_on_disconnected_host_is_not_found():
    hosts = [FakeHost("esx-01"), FakeHost("esx-02"),
             FakeHost("esx-03", HostConnectionState.DISCONNECTED)]
    FakeWorkload("TestVM", host=hosts[2])
    directory = FakeDirectory(FakeCluster("TestCluster", hosts))
    resolution = TopologyResolver(directory).resolve("TestCluster", "TestVM")
    assert resolution.failure is ResolutionFailure.WORKLOAD_NOT_FOUND


def test_empty_hosts_leave_no_vm(two_hosts):
    directory = FakeDirectory(FakeCluster("TestCluster", two_hosts))
    resolution = TopologyResolver(directory).resolve("TestCluster")
    assert resolution.failure is ResolutionFailure.NO_WORKLOAD_AVAILABLE


def test_secondary_is_first_non_primary_host():
    hosts = [FakeHost("esx-01"), FakeHost("esx-02"), FakeHost("esx-03")]
    FakeWorkload("TestVM", host=hosts[1])
    directory = FakeDirectory(FakeCluster("TestCluster", hosts))
    topology = TopologyResolver(directory).resolve("TestCluster").topology
    assert topology.primary_host is hosts[1]
    assert topology.secondary_host is hosts[0]


def test_resolution_is_repeatable(inventory):
    directory, _ = inventory
    resolver = TopologyResolver(directory)
    assert resolver.resolve("TestCluster", "TestVM") == resolver.resolve("TestCluster", "TestVM")
    assert resolver.resolve("TestCluster") == resolver.resolve("TestCluster")
