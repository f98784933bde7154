"""Site synchronization CLI.

Runs full or incremental syncs of mapped spaces into the static site,
inspects sync history and reports, exports single pages or spaces and
manages the auto-sync schedule of a workspace.
"""

import argparse
import json
import logging
import sys
import time
from typing import Any

from semantic_publisher.config.settings import (
    AutoSyncSettings,
    SiteConfig,
    SyncInterval,
    load_config,
    validate_environment,
)
from semantic_publisher.engines.publisher import SitePublisher
from semantic_publisher.errors import (
    ConfigurationError,
    NotFoundError,
    SyncInProgressError,
)
from semantic_publisher.models import SyncResult, SyncStatus
from semantic_publisher.services.config_store import JsonSettingsStore
from semantic_publisher.services.repository import InMemoryContentRepository

DEFAULT_WORKSPACE = "default"

STATUS_ICONS = {
    SyncStatus.SUCCESS: "🟢",
    SyncStatus.PARTIAL: "🟡",
    SyncStatus.FAILED: "🔴",
    SyncStatus.IN_PROGRESS: "⏳",
}


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Setup logging for sync CLI.

    Args:
        verbose: Enable debug logging

    Returns:
        Configured logger instance
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    logger = logging.getLogger("semantic_sync")
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def build_publisher(
    config_file: str | None = None,
    settings_path: str | None = None,
    content_path: str | None = None,
) -> SitePublisher:
    """Wire a SitePublisher from configuration and file-backed stores."""
    config = load_config(config_file)
    repository = InMemoryContentRepository.from_json_file(
        content_path or config.content_path
    )
    store = JsonSettingsStore(settings_path or config.settings_path)
    return SitePublisher(repository, store, config)


def format_status(status: SyncStatus) -> str:
    return f"{STATUS_ICONS.get(status, '❔')} {status.value.upper()}"


def run_sync(
    publisher: SitePublisher,
    workspace_id: str,
    incremental: bool = False,
    output_format: str = "human",
) -> int:
    """Run a sync and print its report.

    Returns:
        Exit code (0 = success/partial, 1 = failed or rejected)
    """
    logger = logging.getLogger("semantic_sync")

    try:
        if incremental:
            result = publisher.sync_engine.perform_sync(workspace_id, incremental=True)
        else:
            result = publisher.trigger_manual_sync(workspace_id)
    except SyncInProgressError as e:
        logger.error(str(e))
        return 1

    report = publisher.sync_engine.generate_sync_report(result)
    if output_format == "json":
        print(
            json.dumps(
                {"sync_result": result.model_dump(mode="json"), **report}, indent=2
            )
        )
    else:
        _print_report(report, result)

    return 1 if result.status == SyncStatus.FAILED else 0


def show_history(
    publisher: SitePublisher,
    workspace_id: str,
    limit: int = 10,
    output_format: str = "human",
) -> int:
    """Print the most recent sync results, newest first."""
    history = publisher.sync_engine.get_sync_history(workspace_id, limit)

    if output_format == "json":
        print(json.dumps([r.model_dump(mode="json") for r in history], indent=2))
        return 0

    print("\n" + "=" * 60)
    print("🕘 SYNC HISTORY")
    print("=" * 60)

    if not history:
        print("\n   No syncs recorded yet")
        return 0

    for result in history:
        stats = result.stats
        print(
            f"\n   {result.start_time.isoformat()}  {format_status(result.status)}"
        )
        print(f"      Id: {result.sync_id}")
        print(
            f"      Spaces: {stats.successful_spaces}/{stats.total_spaces}, "
            f"Pages: {stats.successful_pages}/{stats.total_pages}, "
            f"Conflicts: {stats.conflicts}"
        )
    return 0


def show_status(
    publisher: SitePublisher, workspace_id: str, output_format: str = "human"
) -> int:
    """Print the detailed sync status of a workspace."""
    status = publisher.sync_engine.get_detailed_sync_status(workspace_id)

    if output_format == "json":
        print(json.dumps(status, indent=2))
        return 0

    print("\n" + "=" * 50)
    print("🔄 SYNC STATUS")
    print("=" * 50)

    last_sync = status.get("last_sync")
    if last_sync:
        print(f"\n   Last Sync: {last_sync.get('end_time')}")
        print(f"   Status: {format_status(SyncStatus(last_sync['status']))}")
    else:
        print("\n   Last Sync: never")
    print(f"   Auto-sync: {'enabled' if status['is_auto_sync_enabled'] else 'disabled'}")
    print(f"   Interval: {status['sync_interval']}")
    print(f"   Next Scheduled Sync: {status['next_scheduled_sync'] or '-'}")
    print(f"   Pending Changes: {status['pending_changes']}")
    if status["is_running"]:
        print("   ⏳ A sync is currently running")
    return 0


def show_report(
    publisher: SitePublisher,
    workspace_id: str,
    sync_id: str,
    output_format: str = "human",
) -> int:
    """Print the report of a recorded sync."""
    report = publisher.sync_engine.get_sync_report(workspace_id, sync_id)

    if output_format == "json":
        print(json.dumps(report, indent=2))
    elif report["details"] is None:
        print(f"❌ {report['summary']}")
    else:
        result = SyncResult.model_validate(report["sync_result"])
        _print_report(report, result)

    return 0 if report["details"] is not None else 1


def export_content(
    publisher: SitePublisher,
    workspace_id: str,
    content_id: str,
    content_type: str = "page",
    include_children: bool = False,
    output_format: str = "human",
) -> int:
    """Export a single page or space on demand."""
    outcome = publisher.export_content(
        workspace_id, content_id, content_type, include_children
    )

    if output_format == "json":
        print(json.dumps(outcome, indent=2))
    elif outcome["success"]:
        print(f"✅ {outcome['message']}")
        if outcome["file_path"]:
            print(f"   📄 {outcome['file_path']}")
    else:
        print(f"❌ {outcome['message']}")

    return 0 if outcome["success"] else 1


def configure_site(
    publisher: SitePublisher,
    workspace_id: str,
    site_path: str | None = None,
    base_url: str | None = None,
    site_title: str | None = None,
    enabled: bool | None = None,
) -> int:
    """Create or update the site configuration of a workspace.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    logger = logging.getLogger("semantic_sync")

    site_config = publisher.get_config(workspace_id) or SiteConfig()
    updates = {
        "site_path": site_path,
        "base_url": base_url,
        "site_title": site_title,
        "enabled": enabled,
    }
    site_config = site_config.model_copy(
        update={key: value for key, value in updates.items() if value is not None}
    )

    try:
        publisher.update_config(workspace_id, site_config)
    except ConfigurationError as e:
        logger.error(f"Cannot update configuration: {e}")
        return 1

    state = "enabled" if site_config.enabled else "disabled"
    print(f"✅ Site publishing {state} for workspace {workspace_id}")
    print(f"   Site Path: {site_config.site_path or '-'}")
    print(f"   Base URL: {site_config.base_url}")
    print(f"   Space Mappings: {len(site_config.space_mappings)}")
    return 0


def map_space(
    publisher: SitePublisher,
    workspace_id: str,
    space_id: str,
    category_name: str | None = None,
    position: int | None = None,
    description: str | None = None,
    collapsed: bool | None = None,
) -> int:
    """Create or update the category mapping of a space."""
    logger = logging.getLogger("semantic_sync")

    fields = {
        "category_name": category_name,
        "position": position,
        "description": description,
        "collapsed": collapsed,
    }
    try:
        mapping = publisher.update_space_mapping(
            workspace_id,
            space_id,
            **{key: value for key, value in fields.items() if value is not None},
        )
    except (NotFoundError, ConfigurationError, ValueError) as e:
        logger.error(f"Cannot map space {space_id}: {e}")
        return 1

    print(
        f"✅ Space {mapping.space_id} mapped to '{mapping.category_name}' "
        f"(position {mapping.position})"
    )
    return 0


def unmap_space(publisher: SitePublisher, workspace_id: str, space_id: str) -> int:
    if not publisher.remove_space_mapping(workspace_id, space_id):
        print(f"❌ Space {space_id} is not mapped")
        return 1
    print(f"✅ Removed mapping of space {space_id}")
    return 0


def configure_schedule(
    publisher: SitePublisher,
    workspace_id: str,
    interval: str | None = None,
    enabled: bool | None = None,
    foreground: bool = False,
) -> int:
    """Update the auto-sync settings of a workspace, optionally serving them.

    Args:
        publisher: Wired publisher
        workspace_id: Workspace to configure
        interval: New interval ('manual', 'hourly', 'daily'), unchanged if None
        enabled: Enable or disable auto-sync, unchanged if None
        foreground: Keep running scheduled syncs until interrupted

    Returns:
        Exit code (0 = success, 1 = error)
    """
    logger = logging.getLogger("semantic_sync")

    site_config = publisher.get_config(workspace_id)
    if site_config is None:
        logger.error(f"Site publishing is not configured for workspace {workspace_id}")
        return 1

    if interval is not None or enabled is not None:
        auto_sync = AutoSyncSettings(
            enabled=site_config.auto_sync.enabled if enabled is None else enabled,
            interval=site_config.auto_sync.interval if interval is None else interval,
        )
        try:
            site_config = publisher.update_config(
                workspace_id, site_config.model_copy(update={"auto_sync": auto_sync})
            )
        except ConfigurationError as e:
            logger.error(f"Cannot update schedule: {e}")
            return 1

    _print_schedule(site_config)

    if not foreground:
        return 0

    scheduled = publisher.scheduler.initialize()
    if not scheduled:
        logger.error("No workspace has auto-sync enabled")
        return 1

    print("⏱️  Serving scheduled syncs, press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1)
    finally:
        publisher.scheduler.shutdown()


def validate_setup(
    publisher: SitePublisher,
    workspace_id: str,
    config_file: str | None = None,
    output_format: str = "human",
) -> int:
    """Validate the environment and the workspace's site setup."""
    environment = validate_environment(config_file)
    site = publisher.validate_setup(workspace_id)
    valid = environment["valid"] and site["valid"]

    if output_format == "json":
        print(
            json.dumps(
                {"valid": valid, "environment": environment, "site": site}, indent=2
            )
        )
        return 0 if valid else 1

    print("\n" + "=" * 50)
    print("🔍 SETUP VALIDATION")
    print("=" * 50)
    for error in [*environment["errors"], *site["errors"]]:
        print(f"   ❌ {error}")
    for warning in environment["warnings"]:
        print(f"   ⚠️  {warning}")
    if valid:
        print("   ✅ Site setup is valid")
    return 0 if valid else 1


def _print_report(report: dict[str, Any], result: SyncResult) -> None:
    """Print a sync report in human-readable format."""
    details = report["details"]

    print("\n" + "=" * 60)
    print("📦 SYNC REPORT")
    print("=" * 60)
    print(f"\n   {report['summary']}")

    print(f"\n   Status: {format_status(result.status)}")
    print(f"   Sync Id: {details['sync_id']}")
    print(f"   Spaces Processed: {details['spaces_processed']}")
    print(f"   Pages Exported: {details['pages_exported']}")
    print(f"   Pages Failed: {details['pages_failed']}")
    print(f"   Conflicts: {details['conflicts_resolved']}")
    print(f"   Success Rate: {details['success_rate']}%")
    print(f"   Duration: {details['duration']}")

    if result.stats.errors:
        print("\n🚨 Errors:")
        for error in result.stats.errors:
            print(f"   • {error}")

    if details["recommendations"]:
        print("\n💡 Recommendations:")
        for recommendation in details["recommendations"]:
            print(f"   • {recommendation}")


def _print_schedule(site_config: SiteConfig) -> None:
    auto_sync = site_config.auto_sync
    state = "enabled" if auto_sync.enabled else "disabled"
    print(f"🗓️  Auto-sync {state} ({auto_sync.interval.value})")


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Synchronize workspace content to a documentation site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run                         # Full sync
  %(prog)s run --incremental           # Only pages changed since last sync
  %(prog)s history --limit 5           # Recent syncs
  %(prog)s status                      # Last sync and pending changes
  %(prog)s report sync_123_abc         # Report for a recorded sync
  %(prog)s export page-1 --children    # Export a page and its subtree
  %(prog)s schedule --interval hourly --enable --foreground
  %(prog)s configure --site-path ../site --enable
  %(prog)s map space-1 --category "User Guides" --position 1
  %(prog)s validate                    # Check site setup
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workspace", "-w", default=DEFAULT_WORKSPACE, help="Workspace id"
    )
    common.add_argument("--settings", help="JSON settings store file")
    common.add_argument("--content", help="JSON content export")
    common.add_argument("--config", help="JSON configuration file")
    common.add_argument(
        "--output",
        "-o",
        choices=["human", "json"],
        default="human",
        help="Output format (default: human)",
    )
    common.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", parents=[common], help="Run a sync")
    run_parser.add_argument(
        "--incremental",
        "-i",
        action="store_true",
        help="Only export pages changed since the last successful sync",
    )

    history_parser = subparsers.add_parser(
        "history", parents=[common], help="Show sync history"
    )
    history_parser.add_argument(
        "--limit", "-l", type=int, default=10, help="Number of results (default: 10)"
    )

    subparsers.add_parser("status", parents=[common], help="Show sync status")

    report_parser = subparsers.add_parser(
        "report", parents=[common], help="Show report for a recorded sync"
    )
    report_parser.add_argument("sync_id", help="Sync id from history")

    export_parser = subparsers.add_parser(
        "export", parents=[common], help="Export a single page or space"
    )
    export_parser.add_argument("content_id", help="Page or space id")
    export_parser.add_argument(
        "--type",
        "-t",
        choices=["page", "space"],
        default="page",
        help="Content type (default: page)",
    )
    export_parser.add_argument(
        "--children", "-c", action="store_true", help="Include child pages"
    )

    schedule_parser = subparsers.add_parser(
        "schedule", parents=[common], help="Configure auto-sync schedule"
    )
    schedule_parser.add_argument(
        "--interval", choices=[i.value for i in SyncInterval], help="Sync interval"
    )
    toggle = schedule_parser.add_mutually_exclusive_group()
    toggle.add_argument(
        "--enable",
        dest="enabled",
        action="store_true",
        default=None,
        help="Enable auto-sync",
    )
    toggle.add_argument(
        "--disable", dest="enabled", action="store_false", help="Disable auto-sync"
    )
    schedule_parser.add_argument(
        "--foreground",
        action="store_true",
        help="Keep running scheduled syncs until interrupted",
    )

    configure_parser = subparsers.add_parser(
        "configure", parents=[common], help="Create or update site configuration"
    )
    configure_parser.add_argument("--site-path", help="Root of the static site checkout")
    configure_parser.add_argument("--base-url", help="Base URL of the published site")
    configure_parser.add_argument("--title", help="Site title")
    publishing = configure_parser.add_mutually_exclusive_group()
    publishing.add_argument(
        "--enable",
        dest="enabled",
        action="store_true",
        default=None,
        help="Enable site publishing",
    )
    publishing.add_argument(
        "--disable", dest="enabled", action="store_false", help="Disable site publishing"
    )

    map_parser = subparsers.add_parser(
        "map", parents=[common], help="Map a space to a site category"
    )
    map_parser.add_argument("space_id", help="Space id")
    map_parser.add_argument("--category", help="Category name")
    map_parser.add_argument("--position", type=int, help="Sidebar position")
    map_parser.add_argument("--description", help="Category description")
    map_parser.add_argument(
        "--collapsed",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Collapse the category in the sidebar",
    )

    unmap_parser = subparsers.add_parser(
        "unmap", parents=[common], help="Remove the category mapping of a space"
    )
    unmap_parser.add_argument("space_id", help="Space id")

    subparsers.add_parser("validate", parents=[common], help="Validate site setup")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    logger = setup_logging(args.verbose)

    try:
        publisher = build_publisher(args.config, args.settings, args.content)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Initialization failed: {e}")
        return 1

    try:
        if args.command == "run":
            return run_sync(publisher, args.workspace, args.incremental, args.output)
        elif args.command == "history":
            return show_history(publisher, args.workspace, args.limit, args.output)
        elif args.command == "status":
            return show_status(publisher, args.workspace, args.output)
        elif args.command == "report":
            return show_report(publisher, args.workspace, args.sync_id, args.output)
        elif args.command == "export":
            return export_content(
                publisher,
                args.workspace,
                args.content_id,
                content_type=args.type,
                include_children=args.children,
                output_format=args.output,
            )
        elif args.command == "schedule":
            return configure_schedule(
                publisher,
                args.workspace,
                interval=args.interval,
                enabled=args.enabled,
                foreground=args.foreground,
            )
        elif args.command == "configure":
            return configure_site(
                publisher,
                args.workspace,
                site_path=args.site_path,
                base_url=args.base_url,
                site_title=args.title,
                enabled=args.enabled,
            )
        elif args.command == "map":
            return map_space(
                publisher,
                args.workspace,
                args.space_id,
                category_name=args.category,
                position=args.position,
                description=args.description,
                collapsed=args.collapsed,
            )
        elif args.command == "unmap":
            return unmap_space(publisher, args.workspace, args.space_id)
        elif args.command == "validate":
            return validate_setup(publisher, args.workspace, args.config, args.output)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\n❌ Operation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
