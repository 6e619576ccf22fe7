#!/usr/bin/env python3

import argparse
import logging
import sys
import time
from .config import Target, load_config
from .deploy_engine import DeployEngine
from .network_io import FrameReceiver

def setup_logging(debug: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

def cmd_send(args):
    """Handle send command."""
    try:
        config = load_config(args.config)
        if args.root:
            config.deploy.root = args.root

        if args.host:
            target = Target(name='command-line', hosts=args.host)
        elif args.target:
            target = config.get_target(args.target)
        else:
            print("Error: Specify --target or at least one --host")
            return 1

        errors = []

        def on_before_deploy(file_path, target):
            print(f"Deploying {file_path} to {target.name}...")

        def on_completed(file_path, target, error):
            if error:
                errors.append(error)
                print(f"Error: {error}")

        engine = DeployEngine(config.deploy)
        engine.deploy_files(args.files, target,
                            on_before_deploy=on_before_deploy,
                            on_completed=on_completed)

        return 1 if errors else 0

    except Exception as e:
        print(f"Error: {e}")
        return 1

def cmd_recv(args):
    """Handle recv command."""
    try:
        config = load_config(args.config)
        if args.port is not None:
            config.receiver.port = args.port
        if args.dir:
            config.receiver.output_dir = args.dir

        receiver = FrameReceiver(config.receiver)
        receiver.start()

        print(f"Receiver started on port {receiver.port}")
        print(f"Writing files to {config.receiver.output_dir}")
        print("Listening for incoming files... (Press Ctrl+C to stop)")

        try:
            while True:
                time.sleep(0.5)
        except KeyboardInterrupt:
            print("\nShutting down receiver...")
        finally:
            receiver.stop()

        return 0

    except Exception as e:
        print(f"Error: {e}")
        return 1

def cmd_targets(args):
    """Handle targets command."""
    try:
        config = load_config(args.config)
        if not config.targets:
            print("No targets configured")
            return 0

        print(f"Found {len(config.targets)} target(s):")
        print()
        for target in config.targets:
            print(f"Target: {target.name}")
            for host in target.host_list():
                print(f"  Host: {host}")
            print()
        return 0

    except Exception as e:
        print(f"Error: {e}")
        return 1

def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Remote Deploy: push files to remote hosts over TCP',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start receiver
  remote-deploy recv --port 23979 --dir ./incoming

  # Push a file to a configured target
  remote-deploy --config deploy.yml send --target staging src/app.py

  # Push to explicit hosts
  remote-deploy send --host web1:23979 --host web2 --root . src/app.py
"""
    )

    # Global arguments
    parser.add_argument('--config', type=str,
                       help='Configuration file path')
    parser.add_argument('--debug', action='store_true',
                       help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Send command
    send_parser = subparsers.add_parser('send', help='Push files to a target')
    send_parser.add_argument('files', nargs='+', help='Files to push')
    send_parser.add_argument('--target', type=str,
                            help='Name of a configured target')
    send_parser.add_argument('--host', action='append',
                            help='Host (format: host or host:port), may be repeated')
    send_parser.add_argument('--root', type=str,
                            help='Project root the remote names are relative to')

    # Recv command
    recv_parser = subparsers.add_parser('recv', help='Start receiver')
    recv_parser.add_argument('--port', type=int,
                            help='Port to listen on (default: 23979)')
    recv_parser.add_argument('--dir', type=str,
                            help='Directory received files are written to')

    # Targets command
    subparsers.add_parser('targets', help='List configured targets')

    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.debug)

    # Route to command handlers
    if args.command == 'send':
        return cmd_send(args)
    elif args.command == 'recv':
        return cmd_recv(args)
    elif args.command == 'targets':
        return cmd_targets(args)
    else:
        parser.print_help()
        return 1

if __name__ == '__main__':
    sys.exit(main())
