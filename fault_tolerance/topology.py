#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

import logging

from fault_tolerance.constants import HostConnectionState, MIN_CONNECTED_HOSTS
from fault_tolerance.results import Resolution, ResolutionFailure, Topology

logger = logging.getLogger(__name__)


class TopologyResolver:
    """
    Finds the HA cluster, its connected hosts, the vm to protect and
    the hosts for the primary and secondary vm.
    Only reads from the inventory.
    """
    def __init__(self, directory):
        self._directory = directory

    def resolve(self, cluster_name, workload_name=None):
        cluster = self._directory.find_cluster(cluster_name)
        if cluster is None:
            logger.error(f"Could not find Cluster: \"{cluster_name}\" in vCenter Server inventory")
            return Resolution.failed(ResolutionFailure.CLUSTER_NOT_FOUND, cluster_name)

        if not cluster.protection_enabled:
            logger.error(f"HA is not enabled on the user provided cluster: {cluster_name}")
            return Resolution.failed(ResolutionFailure.PROTECTION_NOT_ENABLED, cluster_name)
        logger.info(f"HA is enabled on Cluster: {cluster_name}")

        hosts = self.connected_hosts(cluster)
        if len(hosts) < MIN_CONNECTED_HOSTS:
            logger.error(f"Could not find minimum number ({MIN_CONNECTED_HOSTS}) of ESXi hosts "
                         f"in connected state, for this cluster: {cluster_name}")
            return Resolution.failed(ResolutionFailure.INSUFFICIENT_HOSTS,
                                     f"{len(hosts)} connected host(s) in {cluster_name}")

        if workload_name is not None:
            primary_host, workload = self.find_workload(hosts, workload_name)
            if workload is None:
                logger.error(f"Could not find VM: {workload_name} on the hosts of cluster {cluster_name}")
                return Resolution.failed(ResolutionFailure.WORKLOAD_NOT_FOUND, workload_name)
            logger.info(f"Found VM: {workload_name} on Host: {primary_host.name}")
        else:
            primary_host, workload = self.first_workload(hosts)
            if workload is None:
                logger.error(f"Could not find any VM on the hosts of cluster {cluster_name}")
                return Resolution.failed(ResolutionFailure.NO_WORKLOAD_AVAILABLE, cluster_name)
            logger.info(f"Taking VM: {workload.name} for FT operations")

        secondary_host = self.secondary_host(hosts, primary_host)
        logger.info(f"Primary host is {primary_host.name}, secondary host is {secondary_host.name}")
        return Resolution.success(Topology(cluster=cluster,
                                           hosts=tuple(hosts),
                                           workload=workload,
                                           primary_host=primary_host,
                                           secondary_host=secondary_host))

    def connected_hosts(self, cluster):
        hosts = []
        for host in self._directory.list_members(cluster):
            if host.connection_state is HostConnectionState.CONNECTED:
                logger.info(f"Found ESXi host: {host.name} in connected state")
                hosts.append(host)
            else:
                logger.info(f"Ignoring ESXi host: {host.name} in {host.connection_state.value} state")
        return hosts

    def find_workload(self, hosts, workload_name):
        for host in hosts:
            for workload in self._directory.list_workloads(host):
                if workload.name == workload_name:
                    return host, workload
        return None, None

    def first_workload(self, hosts):
        for host in hosts:
            workloads = self._directory.list_workloads(host)
            if workloads:
                return host, workloads[0]
        return None, None

    @staticmethod
    def secondary_host(hosts, primary_host):
        # With more than two hosts any non-primary one will do, take the first.
        for host in hosts:
            if host.name != primary_host.name:
                return host
        return None
