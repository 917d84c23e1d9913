#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

import ssl

from enum import Enum

# For use in environments with self-signed certificates
IGNORE_SSL_CONTEXT = ssl.create_default_context()
IGNORE_SSL_CONTEXT.check_hostname = False
IGNORE_SSL_CONTEXT.verify_mode = ssl.CERT_NONE

# Timeouts in seconds
TASK_TIMEOUT = 240
DISABLE_SECONDARY_TIMEOUT = 120

# Each LOOP_DELAY seconds of a timeout buys one observation, observations are
# POLL_INTERVAL seconds apart.
LOOP_DELAY = 5
POLL_INTERVAL = 2

# Pauses around the rollback operations and before the process exits
SETTLE_DELAY = 5
EXIT_DELAY = 2

MIN_CONNECTED_HOSTS = 2

DEFAULT_PORT = 443

BANNER = "#########################"
STEP_MARKER = "* * * *"


class TaskState(Enum):
    """
    States reported by vim.TaskInfo.state
    """
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ProtectionState(Enum):
    """
    States reported by vim.VirtualMachine.FaultToleranceState
    """
    NOT_CONFIGURED = "notConfigured"
    DISABLED = "disabled"
    ENABLED = "enabled"
    STARTING = "starting"
    NEED_SECONDARY = "needSecondary"
    RUNNING = "running"


class PowerState(Enum):
    POWERED_ON = "poweredOn"
    POWERED_OFF = "poweredOff"
    SUSPENDED = "suspended"


class HostConnectionState(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    NOT_RESPONDING = "notResponding"
    OTHER = "other"

    @classmethod
    def from_value(cls, value):
        """
        Map a vSphere connection state string, anything unknown becomes OTHER.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


# FT can only be turned off from these states
PROTECTED_STATES = (ProtectionState.ENABLED, ProtectionState.RUNNING)

# Secondary is (re)starting, the pair is not protected yet
SECONDARY_PENDING_STATES = (ProtectionState.STARTING, ProtectionState.NEED_SECONDARY)
