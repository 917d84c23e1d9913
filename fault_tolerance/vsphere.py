#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

"""
pyVmomi backed inventory access and vm operations used by the FT lifecycle.
"""

import logging

from pyVim.connect import SmartConnect, Disconnect, vim

from fault_tolerance.constants import (DEFAULT_PORT, HostConnectionState, IGNORE_SSL_CONTEXT,
                                       PowerState, ProtectionState, TaskState)

logger = logging.getLogger(__name__)


class VsphereSession:
    """
    Connection to a vCenter Server or ESXi host.
    Usable as a context manager, the session is closed on exit.
    """
    def __init__(self, endpoint, user, password, port=DEFAULT_PORT, ssl_context=IGNORE_SSL_CONTEXT):
        self._endpoint = endpoint
        self._user = user
        self._password = password
        self._port = port
        self._ssl_context = ssl_context
        self._si = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, type, value, traceback):
        self.disconnect()

    @property
    def endpoint(self):
        return self._endpoint

    def connect(self):
        logger.info(f"Logging into vSphere : {self._endpoint}, with provided credentials")
        self._si = SmartConnect(host=self._endpoint,
                                user=self._user,
                                pwd=self._password,
                                port=self._port,
                                sslContext=self._ssl_context)
        logger.info(f"Successfully logged into vSphere: {self._endpoint}")

    def disconnect(self):
        if self._si is None:
            return
        logger.info(f"Logging out from vSphere : {self._endpoint}")
        Disconnect(self._si)
        self._si = None

    def directory(self):
        if self._si is None:
            raise Exception(f"Not connected to vSphere {self._endpoint}")
        return VsphereDirectory(self._si.RetrieveContent())


class VsphereDirectory:
    """
    Inventory lookups needed by the topology resolver.
    """
    def __init__(self, content):
        self._content = content

    def get_all_objects(self, vim_type):
        """
        Helper function to retrieve all objects of a given
        kind in a vCenter environment
        """
        container = self._content.viewManager.CreateContainerView(self._content.rootFolder, vim_type, True)
        try:
            return list(container.view)
        finally:
            container.Destroy()

    def find_cluster(self, name):
        clusters = self.get_all_objects([vim.ClusterComputeResource])
        if len(clusters) == 0:
            logger.error("Could not find any clusters in vCenter Server")
            return None
        logger.info("Found Clusters in inventory. Check and retrieve HA Enabled Cluster")
        for cluster in clusters:
            if cluster.name == name:
                return ClusterCandidate(cluster)
        return None

    def list_members(self, cluster):
        return [HostCandidate(host) for host in cluster.managed_object.host]

    def list_workloads(self, host):
        return [VirtualMachineWorkload(vm, host) for vm in host.managed_object.vm]


class ClusterCandidate:
    def __init__(self, managed_object):
        self.managed_object = managed_object
        self.name = managed_object.name

    @property
    def protection_enabled(self):
        das_config = self.managed_object.configurationEx.dasConfig
        return das_config is not None and bool(das_config.enabled)


class HostCandidate:
    def __init__(self, managed_object):
        self.managed_object = managed_object
        self.name = managed_object.name

    @property
    def connection_state(self):
        return HostConnectionState.from_value(self.managed_object.runtime.connectionState)


class VimTaskHandle:
    def __init__(self, task):
        self._task = task

    def current_state(self):
        return TaskState(self._task.info.state)

    def error_message(self):
        error = self._task.info.error
        if error is None:
            return None
        return getattr(error, "msg", None) or str(error)


class VirtualMachineWorkload:
    """
    FT operations on a vm. Every operation returns a VimTaskHandle
    for the vSphere task it started.
    """
    def __init__(self, managed_object, host):
        self.managed_object = managed_object
        self.name = managed_object.name
        self.host = host

    def create_replica(self, target_host):
        return VimTaskHandle(self.managed_object.CreateSecondaryVM_Task(host=target_host.managed_object))

    def power_on(self):
        return VimTaskHandle(self.managed_object.PowerOnVM_Task())

    def power_off(self):
        return VimTaskHandle(self.managed_object.PowerOffVM_Task())

    def disable_replica(self, replica):
        return VimTaskHandle(self.managed_object.DisableSecondaryVM_Task(vm=replica.managed_object))

    def enable_replica(self, replica, target_host):
        return VimTaskHandle(self.managed_object.EnableSecondaryVM_Task(vm=replica.managed_object,
                                                                        host=target_host.managed_object))

    def promote_replica(self, replica):
        return VimTaskHandle(self.managed_object.MakePrimaryVM_Task(vm=replica.managed_object))

    def remove_protection(self):
        return VimTaskHandle(self.managed_object.TurnOffFaultToleranceForVM_Task())

    def current_protection_state(self):
        return ProtectionState(self.managed_object.runtime.faultToleranceState)

    def current_power_state(self):
        return PowerState(self.managed_object.runtime.powerState)
