#**********************************************************
# Copyright (c) 2025 Broadcom. All Rights Reserved.
# Broadcom Confidential. The term "Broadcom" refers to Broadcom Inc.
# and/or its subsidiaries.
# **********************************************************

import argparse
import logging
import sys

from getpass import getpass
from time import sleep, time

from pyVim.connect import vim

from fault_tolerance.constants import BANNER, DEFAULT_PORT, EXIT_DELAY
from fault_tolerance.orchestrator import perform_ft_ops
from fault_tolerance.vsphere import VsphereSession

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOGIN_FAILED = 3

logger = logging.getLogger(__name__)

FAILED_LOGIN_REASONS = """Possible reasons:
1. Provided username/password credentials are incorrect
2. If username/password or other fields contain special characters, surround them with double quotes and for non-windows environment with single quotes
3. vCenter Server/ESXi server might not be reachable"""


def setup_logger(log_filename, log_level=logging.INFO):
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    result_logger = logging.getLogger()
    result_logger.setLevel(log_level)
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    file_handler = logging.FileHandler(filename=log_filename, encoding="utf-8")
    file_handler.setFormatter(formatter)
    result_logger.addHandler(stdout_handler)
    result_logger.addHandler(file_handler)
    return result_logger


def text_prompt(prompt="> ", mask=False):
    """
    Helper function that prompts the user for input.
    Supports masking input for sensitive values.
    """
    if mask:
        return getpass(prompt)
    return input(prompt)


def setup_arguments(argv=None):
    """
    Perform argument parsing and return the result
    """
    parser = argparse.ArgumentParser(
        description="Turn on FT for a VM of an HA cluster, exercise its secondary VM and "
                    "a test failover, then turn FT off again.",
        epilog="Example: ft-lifecycle --endpoint 10.1.2.3 --username adminUser "
               "--password dummy --clusterName TestCluster [--vmName TestVM]")
    parser.add_argument("--endpoint", "--vsphereip", dest="endpoint", type=str, required=True,
                        help="vCenter Server / ESXi hostname or IP")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="vSphere API port")
    parser.add_argument("--username", type=str, help="vSphere username")
    parser.add_argument("--password", type=str, help="vSphere password")
    parser.add_argument("--clusterName", "--cluster-name", dest="cluster_name", type=str, required=True,
                        help="HA enabled cluster to run the FT operations on")
    parser.add_argument("--vmName", "--workload-name", dest="workload_name", type=str,
                        help="VM to run the FT operations on, any VM of the cluster if omitted")
    parser.add_argument("--requireReprotect", dest="require_reprotect", action="store_true",
                        help="Skip the test failover when the FT pair is not protected after "
                             "enabling the secondary VM")
    parser.add_argument("--logFile", dest="log_file", type=str,
                        help="Log file, defaults to ft-lifecycle-<timestamp>.log")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def collect_credentials(args):
    """
    Prompts the user for the credentials missing from the command line.
    """
    if args.username is None:
        args.username = text_prompt("Enter vSphere username: ")
    if args.password is None:
        args.password = text_prompt("Enter vSphere password: ", mask=True)
    return args


def run(args):
    session = VsphereSession(args.endpoint, args.username, args.password, port=args.port)
    try:
        session.connect()
    except vim.fault.InvalidLogin as e:
        logger.error(f"Failed to login to vSphere {args.endpoint}: {e.msg}")
        logger.error(FAILED_LOGIN_REASONS)
        return EXIT_LOGIN_FAILED
    except Exception as e:
        logger.error(f"Caught an exception, while logging into vSphere :{args.endpoint} with provided credentials - {e}")
        logger.error(FAILED_LOGIN_REASONS)
        return EXIT_LOGIN_FAILED

    try:
        report = perform_ft_ops(session.directory(),
                                args.cluster_name,
                                args.workload_name,
                                require_reprotect_before_promote=args.require_reprotect)
    finally:
        session.disconnect()

    if report.succeeded:
        logger.info("FT operations completed successfully")
        return EXIT_OK
    if report.resolution is not None and not report.resolution.ok:
        logger.error(f"FT operations not started: {report.resolution.failure.value} ({report.resolution.detail})")
    elif report.fault is not None:
        logger.error(f"FT operations aborted: {report.fault}")
    else:
        logger.error(f"FT operations failed at step: {report.failed_step}")
    return EXIT_FAILED


def main(argv=None):
    args = setup_arguments(argv)
    log_file = args.log_file or f"ft-lifecycle-{int(time())}.log"
    setup_logger(log_file, logging.DEBUG if args.verbose else logging.INFO)

    logger.info(f"{BANNER} Fault Tolerance Script execution STARTED {BANNER}")
    exit_code = EXIT_FAILED
    try:
        collect_credentials(args)
        exit_code = run(args)
    except (KeyboardInterrupt, EOFError):
        logger.warning("Fault Tolerance workflow was interrupted!")
    sleep(EXIT_DELAY)
    logger.info(f"{BANNER} Fault Tolerance Script execution completed {BANNER}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
