#!/usr/bin/env python3
#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

# Usage:
#   python3 ft-lifecycle.py --endpoint 10.1.2.3 --username adminUser --password dummy --clusterName TestCluster
#   python3 ft-lifecycle.py --endpoint 10.1.2.3 --username adminUser --password dummy --clusterName TestCluster --vmName TestVM
#
# Requires the fault_tolerance package, install it with 'pip3 install .' from the repository root.

import sys

from fault_tolerance.cli import main

if __name__ == "__main__":
    sys.exit(main())
