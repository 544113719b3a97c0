#!/usr/bin/env python3
"""
CxSAST Scan Orchestrator

Submits scans, waits for them, and retrieves filtered results from a CxSAST server.
"""

import sys
import argparse
import threading
import time
from cxscan.errors import CxScanError
from cxscan.gateways.project_directory import ProjectDirectory
from cxscan.gateways.report_gateway import ReportGateway
from cxscan.gateways.scan_gateway import ScanGateway
from cxscan.models.filter_configuration import FilterConfiguration
from cxscan.models.scan import ScanHandle, ScanRequest
from cxscan.operations.filter_engine import apply_filter
from cxscan.operations.orchestrator import ScanOrchestrator
from cxscan.operations.result_parser import ResultParser
from cxscan.utils.api_client import APIClient
from cxscan.utils.auth import AuthManager
from cxscan.utils.config import Config
from cxscan.utils.debug_logger import DebugLogger
from cxscan.utils.exception_reporter import ExceptionReporter
from cxscan.utils.file_manager import FileManager, get_file_size
from cxscan.utils.progress import ProgressTracker, StageTracker
from cxscan.utils.results_exporter import ResultsExporter

# Commands that never talk to the server
OFFLINE_COMMANDS = {'parse'}


def parse_args(argv=None):
    """Parse command line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--env-file', help='Path to environment file (default: .env)')
    common.add_argument('--base-url', help='CxSAST server URL')
    common.add_argument('--username', help='CxSAST user name')
    common.add_argument('--password', help='CxSAST password')
    common.add_argument('--debug', action='store_true', help='Enable debug output')
    common.add_argument('--output-dir', help='Output directory for results and logs')

    results = argparse.ArgumentParser(add_help=False)
    results.add_argument('--filter', action='append', default=[], metavar='FIELD=VALUE',
                         help="Filter results, e.g. 'severity=High||Medium' (repeatable)")
    results.add_argument('--format', choices=['csv', 'xlsx'], default='csv', help='Output file format')
    results.add_argument('--report-timeout', type=float, help='Maximum wait for report generation (seconds)')
    results.add_argument('--poll-interval', type=float, help='Initial polling interval (seconds)')
    results.add_argument('--save-raw', action='store_true', help='Keep the raw report next to the results')

    parser = argparse.ArgumentParser(
        description='CxSAST Scan Orchestrator - Submit scans and collect filtered results'
    )
    commands = parser.add_subparsers(dest='command', required=True)

    scan = commands.add_parser('scan', parents=[common, results], help='Create a scan and report its results')
    scan.add_argument('--project-id', type=int, required=True, help='Project ID to scan')
    scan.add_argument('--preset', required=True, help='Preset name or ID')
    scan.add_argument('--engine-configuration', help='Engine configuration name or ID')
    scan.add_argument('--exclude-folders', default='', help='Comma separated folder patterns to exclude')
    scan.add_argument('--exclude-files', default='', help='Comma separated file patterns to exclude')
    scan.add_argument('--comment', help='Scan comment')
    scan.add_argument('--incremental', action='store_true', help='Run an incremental scan')
    scan.add_argument('--scan-timeout', type=float, help='Maximum wait for the scan (seconds)')
    scan.add_argument('--wait-for-active', action='store_true',
                      help='Wait for active scans of the project instead of failing')

    latest = commands.add_parser('latest', parents=[common, results], help='Results of the latest finished scan')
    latest.add_argument('--team', required=True, help='Team full path, e.g. /CxServer/SP/Company')
    latest.add_argument('--project', required=True, help='Project name')

    summary = commands.add_parser('summary', parents=[common], help='Severity counts of the latest scan')
    summary.add_argument('--team', required=True, help='Team full path')
    summary.add_argument('--project', required=True, help='Project name')

    parse = commands.add_parser('parse', parents=[common, results], help='Parse local report files')
    parse.add_argument('--xml', help='XML report file')
    parse.add_argument('--osa-vulnerabilities', help='OSA vulnerabilities JSON file')
    parse.add_argument('--osa-libraries', help='OSA libraries JSON file')

    cancel = commands.add_parser('cancel', parents=[common], help='Cancel a scan')
    cancel.add_argument('--scan-id', type=int, required=True)
    cancel.add_argument('--project-id', type=int, required=True)

    delete = commands.add_parser('delete', parents=[common], help='Delete a scan')
    delete.add_argument('--scan-id', type=int, required=True)
    delete.add_argument('--project-id', type=int, required=True)
    delete.add_argument('--keep-running', action='store_true', help='Refuse to delete the scan if it is active')

    delete_project = commands.add_parser('delete-project', parents=[common], help='Delete a project')
    delete_project.add_argument('--project-id', type=int, required=True)
    delete_project.add_argument('--delete-running-scans', action='store_true',
                                help='Cancel active scans of the project before deleting it')

    return parser.parse_args(argv)


def split_patterns(value):
    return [item.strip() for item in (value or '').split(',') if item.strip()]


def build_filters(args, config):
    """Command line filters win over filters from the environment."""
    if getattr(args, 'filter', None):
        return FilterConfiguration.from_expressions(args.filter)
    filters = config.filter_configuration()
    return None if filters.is_empty else filters


def build_orchestrator(config, file_manager, progress_tracker, debug_logger, exception_reporter):
    auth_manager = AuthManager.from_config(config, debug_logger)
    auth_manager.ensure_authenticated()
    if config.debug:
        print("\n✓ Successfully authenticated with CxSAST")

    api_client = APIClient(config.base_url, auth_manager, config, config.debug, debug_logger)
    return ScanOrchestrator(
        config,
        ScanGateway(api_client, debug_logger),
        ReportGateway(api_client, debug_logger),
        ProjectDirectory(api_client, debug_logger),
        result_parser=ResultParser(debug_logger),
        file_manager=file_manager,
        progress=progress_tracker,
        debug_logger=debug_logger,
        exception_reporter=exception_reporter
    )


def run_parse(args, filters, debug_logger):
    parser = ResultParser(debug_logger)
    if args.xml:
        results = parser.parse_file(args.xml)
    elif args.osa_vulnerabilities and args.osa_libraries:
        results = parser.parse_osa_files(args.osa_vulnerabilities, args.osa_libraries)
    else:
        raise ValueError("parse needs --xml or both --osa-vulnerabilities and --osa-libraries")
    return apply_filter(results, filters) if filters else results


def print_results(results):
    print(f"\nScan {results.scan_id} (project {results.project_name or results.project_id})")
    if results.engine_version:
        print(f"  - Engine: {results.engine_version}")
    print(f"  - Findings: {results.total}")
    for severity, count in results.summary.items():
        print(f"  - {severity.value}: {count}")


def main(argv=None):
    """Main entry point."""
    start_time = time.time()
    args = parse_args(argv)

    env_file = args.env_file or '.env'
    config = Config.from_args(args, Config.from_env(env_file))

    if args.command not in OFFLINE_COMMANDS:
        is_valid, error = config.validate()
        if not is_valid:
            print(f"Configuration error: {error}")
            return 1

    print("="*120)
    print("CxSAST Scan Orchestrator")
    print("="*120)
    if args.command not in OFFLINE_COMMANDS:
        print(f"Server: {config.base_url}")
    print(f"Command: {args.command}")
    print(f"Output Directory: {config.output_directory}")
    print("="*120)

    file_manager = FileManager(config, config.debug)
    file_manager.setup_directories()
    debug_log_path = file_manager.get_debug_log_path()
    debug_logger = DebugLogger(debug_log_path, console_debug=config.debug)
    debug_logger.log(f"Command: {args.command}")
    if config.base_url:
        debug_logger.log(f"Server: {config.base_url}")

    progress_tracker = ProgressTracker(config.debug)
    stage_tracker = StageTracker(config.debug)
    exception_reporter = ExceptionReporter()
    exporter = ResultsExporter(config.debug, debug_logger)
    cancel_event = threading.Event()

    stage = None
    try:
        filters = build_filters(args, config) if hasattr(args, 'filter') else None
        if filters:
            debug_logger.log(f"Filters: {filters}")

        if args.command == 'parse':
            stage = "Parse Reports"
            stage_tracker.start_stage(stage)
            results = run_parse(args, filters, debug_logger)
        else:
            orchestrator = build_orchestrator(config, file_manager, progress_tracker,
                                              debug_logger, exception_reporter)

            if args.command == 'scan':
                request = ScanRequest(
                    project_id=args.project_id,
                    preset=args.preset,
                    engine_configuration=args.engine_configuration,
                    exclude_folders=split_patterns(args.exclude_folders),
                    exclude_files=split_patterns(args.exclude_files),
                    comment=args.comment,
                    incremental=args.incremental
                )
                stage = "Scan and Report"
                stage_tracker.start_stage(stage)
                exception_reporter.update_stats(project=args.project_id)
                results = orchestrator.create_scan_and_report(request, filters, cancel_event)
            elif args.command == 'latest':
                stage = "Latest Scan Results"
                stage_tracker.start_stage(stage)
                exception_reporter.update_stats(project=f"{args.team}/{args.project}")
                results = orchestrator.get_latest_results(args.team, args.project, filters, cancel_event)
            elif args.command == 'summary':
                summary = orchestrator.get_scan_summary(args.team, args.project)
                print(f"\nScan {summary.scan_id} ({summary.total} findings)")
                for severity, count in summary.counts().items():
                    print(f"  - {severity.value}: {count}")
                debug_logger.close()
                return 0
            elif args.command == 'cancel':
                sent = orchestrator.cancel_scan(ScanHandle(args.scan_id, args.project_id))
                print(f"\nScan {args.scan_id}: {'cancel requested' if sent else 'already finished, nothing to cancel'}")
                debug_logger.close()
                return 0
            elif args.command == 'delete':
                orchestrator.delete_scan(ScanHandle(args.scan_id, args.project_id),
                                         delete_running_scans=not args.keep_running)
                print(f"\nScan {args.scan_id} deleted")
                debug_logger.close()
                return 0
            elif args.command == 'delete-project':
                orchestrator.delete_project(args.project_id, delete_running_scans=args.delete_running_scans)
                print(f"\nProject {args.project_id} deleted")
                debug_logger.close()
                return 0

        output_path = file_manager.get_output_file_path(
            project=results.project_name or results.project_id,
            scan_id=results.scan_id,
            ext=args.format
        )
        exporter.write(results, output_path)
        stage_tracker.end_stage(
            stage,
            findings=results.total,
            output_file=output_path
        )

        elapsed_time = time.time() - start_time
        hours = int(elapsed_time // 3600)
        minutes = int((elapsed_time % 3600) // 60)
        seconds = int(elapsed_time % 60)

        exception_reporter.update_stats(
            scan_id=results.scan_id,
            scan_state='Finished',
            findings_filtered=results.total,
            execution_time=f"{hours}h {minutes}m {seconds}s",
            output_file=output_path
        )
        report_path = exception_reporter.generate_report(output_path)

        debug_logger.log("="*120)
        debug_logger.log("EXECUTION COMPLETED")
        debug_logger.log(f"Findings: {results.total}")
        debug_logger.log(f"Output file: {output_path}")
        debug_logger.log(f"Execution time: {hours}h {minutes}m {seconds}s")
        debug_logger.close()

        print_results(results)
        print(f"\nOutput:")
        print(f"  - Data File: {output_path}")
        print(f"  - Size: {get_file_size(output_path)}")
        print(f"  - Report File: {report_path}")
        print(f"  - Debug Log: {debug_log_path}")
        print(f"\nExecution time: {hours}h {minutes}m {seconds}s")
        print("="*120)
        return 0

    except KeyboardInterrupt:
        cancel_event.set()
        print("\n\nOperation cancelled by user.")
        debug_logger.log("INTERRUPTED: Operation cancelled by user")
        debug_logger.close()
        return 130
    except (CxScanError, ValueError, OSError) as e:
        print(f"\nError: {e}")
        debug_logger.error(f"FATAL ERROR: {e}")
        if config.debug:
            import traceback
            debug_logger.log(f"Traceback: {traceback.format_exc()}")
        debug_logger.close()
        return 1


if __name__ == "__main__":
    sys.exit(main())
