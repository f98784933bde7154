"""Content analysis CLI for category suggestions and taxonomy statistics.

Reads a JSON content export, clusters its pages and proposes documentation
categories for the workspace.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from semantic_publisher.config.settings import load_config
from semantic_publisher.engines.content_analyzer import ContentAnalyzer
from semantic_publisher.services.repository import InMemoryContentRepository

DEFAULT_WORKSPACE = "default"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Setup logging for analysis CLI.

    Args:
        verbose: Enable debug logging

    Returns:
        Configured logger instance
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    logger = logging.getLogger("semantic_analyze")
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def _build_analyzer(
    config_file: str | None, content_path: str | None
) -> ContentAnalyzer:
    config = load_config(config_file)
    repository = InMemoryContentRepository.from_json_file(
        content_path or config.content_path
    )
    return ContentAnalyzer(repository, config)


def _save(data: dict[str, Any], path: str, logger: logging.Logger) -> None:
    output_path = Path(path)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"Results saved to: {output_path}")


def suggest_categories(
    workspace_id: str = DEFAULT_WORKSPACE,
    mode: str | None = None,
    output_format: str = "human",
    content_path: str | None = None,
    config_file: str | None = None,
    save_results: str | None = None,
    verbose: bool = False,
) -> int:
    """Analyze a workspace and print category suggestions.

    Args:
        workspace_id: Workspace to analyze
        mode: Clustering mode ('semantic' or 'basic'), config default if None
        output_format: Output format ('human', 'json')
        content_path: JSON content export, config default if None
        config_file: Optional JSON configuration file
        save_results: Optional file path to save results
        verbose: Enable verbose logging

    Returns:
        Exit code (0 = success, 1 = error)
    """
    logger = setup_logging(verbose)

    try:
        analyzer = _build_analyzer(config_file, content_path)
        result = analyzer.analyze_content_hierarchy(workspace_id, mode)
        data = result.to_dict()

        if save_results:
            _save(data, save_results, logger)

        if output_format == "json":
            print(json.dumps(data, indent=2))
        else:
            _print_suggestions(data)
        return 0

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1


def show_stats(
    workspace_id: str = DEFAULT_WORKSPACE,
    mode: str | None = None,
    output_format: str = "human",
    content_path: str | None = None,
    config_file: str | None = None,
    verbose: bool = False,
) -> int:
    """Print hierarchy and keyword statistics of a workspace.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    logger = setup_logging(verbose)

    try:
        analyzer = _build_analyzer(config_file, content_path)
        result = analyzer.analyze_content_hierarchy(workspace_id, mode)

        if output_format == "json":
            data = {"stats": result.stats, "hierarchy": result.hierarchy}
            print(json.dumps(data, indent=2))
        else:
            _print_stats(result.stats, result.hierarchy)
        return 0

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Statistics failed: {e}")
        return 1


def visualize_clusters(
    workspace_id: str = DEFAULT_WORKSPACE,
    output_file: str | None = None,
    content_path: str | None = None,
    config_file: str | None = None,
    verbose: bool = False,
) -> int:
    """Write a 2D scatter plot of the workspace's semantic clusters.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    logger = setup_logging(verbose)

    try:
        analyzer = _build_analyzer(config_file, content_path)
        if not analyzer.config.cluster_visualization:
            logger.error("Cluster visualization is disabled in configuration")
            return 1

        _, documents = analyzer.load_documents(workspace_id)
        clusters = analyzer.cluster_engine.cluster_by_vectors(documents)

        output_path = output_file or "document_clusters_visualization.png"
        result_path = analyzer.cluster_engine.visualize_clusters(
            documents, clusters, output_path
        )

        if result_path:
            print(f"✅ Visualization saved to: {result_path}")
            return 0

        logger.warning("Visualization creation failed (not enough documents or terms)")
        return 1

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Visualization failed: {e}")
        return 1


def _print_suggestions(data: dict[str, Any]) -> None:
    """Print category suggestions in human-readable format."""
    stats = data.get("stats", {})
    suggestions = data.get("suggestions", [])

    print("\n" + "=" * 60)
    print("📚 CATEGORY SUGGESTIONS")
    print("=" * 60)

    print("\n📈 Overview:")
    print(f"   Spaces: {stats.get('total_spaces', 0)}")
    print(f"   Pages: {stats.get('total_pages', 0)}")
    print(f"   Clusters: {stats.get('total_clusters', 0)}")
    print(f"   Method: {stats.get('clustering_method', 'unknown')}")

    if not suggestions:
        print("\n✅ No category suggestions for this workspace")
        return

    print(f"\n💡 Suggestions ({len(suggestions)}):")
    for i, suggestion in enumerate(suggestions, 1):
        confidence = suggestion.get("confidence", 0)
        print(f"\n   {i}. {suggestion.get('name')} [{suggestion.get('kind')}]")
        print(f"      Confidence: {confidence:.0%}")
        print(f"      {suggestion.get('reasoning')}")
        pages = suggestion.get("pages", [])
        if pages:
            print(f"      Pages: {len(pages)}")


def _print_stats(stats: dict[str, Any], hierarchy: dict[str, Any]) -> None:
    """Print workspace statistics in human-readable format."""
    print("\n" + "=" * 50)
    print("📊 WORKSPACE STATISTICS")
    print("=" * 50)

    print(f"\n   Total Spaces: {stats.get('total_spaces', 0)}")
    print(f"   Total Pages: {stats.get('total_pages', 0)}")
    print(f"   Pages per Space: {stats.get('average_pages_per_space', 0)}")
    print(f"   Hierarchical Pages: {stats.get('hierarchical_pages', 0)}")
    print(f"   Orphan Pages: {stats.get('orphan_pages', 0)}")
    print(f"   Clusters: {stats.get('total_clusters', 0)}")
    print(f"   Average Cluster Size: {stats.get('average_cluster_size', 0)}")
    print(f"   Max Depth: {hierarchy.get('max_depth', 0)}")

    keywords = stats.get("top_keywords", [])
    if keywords:
        print("\n🔑 Top Keywords:")
        for keyword in keywords:
            print(f"   {keyword['term']}: {keyword['score']}")

    spaces = hierarchy.get("spaces", [])
    if spaces:
        print("\n📁 Spaces:")
        for space in spaces:
            print(
                f"   {space['space_name']}: {space['total_pages']} pages, "
                f"depth {space['depth']}"
            )


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Content analysis and category suggestions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s suggest                      # Suggest categories
  %(prog)s suggest --mode basic         # Keyword-overlap clustering
  %(prog)s stats -o json                # Statistics as JSON
  %(prog)s visualize -f clusters.png    # Create visualization
  %(prog)s suggest --save results.json  # Save results to file
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workspace", "-w", default=DEFAULT_WORKSPACE, help="Workspace id"
    )
    common.add_argument("--content", help="JSON content export to analyze")
    common.add_argument("--config", help="JSON configuration file")
    common.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    suggest_parser = subparsers.add_parser(
        "suggest", parents=[common], help="Suggest documentation categories"
    )
    suggest_parser.add_argument(
        "--mode",
        "-m",
        choices=["semantic", "basic"],
        help="Clustering mode (default: from configuration)",
    )
    suggest_parser.add_argument(
        "--output",
        "-o",
        choices=["human", "json"],
        default="human",
        help="Output format (default: human)",
    )
    suggest_parser.add_argument("--save", "-s", help="Save results to JSON file")

    stats_parser = subparsers.add_parser(
        "stats", parents=[common], help="Show hierarchy and keyword statistics"
    )
    stats_parser.add_argument(
        "--mode",
        "-m",
        choices=["semantic", "basic"],
        help="Clustering mode (default: from configuration)",
    )
    stats_parser.add_argument(
        "--output",
        "-o",
        choices=["human", "json"],
        default="human",
        help="Output format (default: human)",
    )

    viz_parser = subparsers.add_parser(
        "visualize", parents=[common], help="Create cluster visualization"
    )
    viz_parser.add_argument(
        "--file",
        "-f",
        help="Output file path (default: document_clusters_visualization.png)",
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "suggest":
            return suggest_categories(
                workspace_id=args.workspace,
                mode=args.mode,
                output_format=args.output,
                content_path=args.content,
                config_file=args.config,
                save_results=args.save,
                verbose=args.verbose,
            )
        elif args.command == "stats":
            return show_stats(
                workspace_id=args.workspace,
                mode=args.mode,
                output_format=args.output,
                content_path=args.content,
                config_file=args.config,
                verbose=args.verbose,
            )
        elif args.command == "visualize":
            return visualize_clusters(
                workspace_id=args.workspace,
                output_file=args.file,
                content_path=args.content,
                config_file=args.config,
                verbose=args.verbose,
            )
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\n❌ Operation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
