#!/usr/bin/env python3
"""
OperandConfig Controller - Entry Point

A Kubernetes controller that watches CommonService objects and keeps the
shared OperandConfig sized for the most demanding tenant.

Usage:
    python run.py [--namespace NAMESPACE] [--rules-file PATH] [--dry-run] [--in-cluster]
"""

import argparse
import logging
import sys

from kubernetes import config

from operandconfig_controller.config import DEFAULT_SERVICES_NAMESPACE
from operandconfig_controller.controller import CommonServiceController
from operandconfig_controller.errors import MalformedRuleDocumentError
from operandconfig_controller.rules import load_rules, read_rules_file

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="OperandConfig Controller - Merge CommonService requests into the OperandConfig"
    )
    parser.add_argument(
        "--namespace", "-n",
        default=DEFAULT_SERVICES_NAMESPACE,
        help=f"Services namespace holding the OperandConfig (default: {DEFAULT_SERVICES_NAMESPACE})"
    )
    parser.add_argument(
        "--watch-namespace",
        default="",
        help="Namespace to watch for CommonServices (default: all namespaces)"
    )
    parser.add_argument(
        "--rules-file",
        default=None,
        help="YAML rules document to use instead of the built-in rules"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (OperandConfig is not written)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )

    args = parser.parse_args()

    # Set log level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Fail fast on a bad rules document instead of on every reconcile
    rules_text = None
    if args.rules_file:
        try:
            rules_text = read_rules_file(args.rules_file)
            load_rules(rules_text)
        except MalformedRuleDocumentError as e:
            logger.error(f"Invalid rules file: {e}")
            sys.exit(1)

    # Load Kubernetes configuration
    try:
        if args.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
    except Exception as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    # Create and run controller
    controller = CommonServiceController(
        namespace=args.namespace,
        watch_namespace=args.watch_namespace,
        dry_run=args.dry_run,
        rules_text=rules_text
    )

    try:
        controller.run()
    except KeyboardInterrupt:
        controller.stop()
        logger.info("Controller stopped")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
