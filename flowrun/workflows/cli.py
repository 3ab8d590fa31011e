#!/usr/bin/env python3
"""
CLI interface for step-based workflows.

Provides command-line interface for executing, validating and configuring workflows.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from flowrun.engine.errors import EngineError, StepExecutionError, UnknownStepKindError
from flowrun.engine.executor import WorkflowExecutor
from flowrun.engine.validation import validate_graph
from flowrun.steps.registry import build_registry, registry_from_config
from flowrun.utils.common import format_duration, format_value, print_section, save_json
from flowrun.utils.config import get_config_manager
from flowrun.workflows.serialization import WorkflowFormatError, WorkflowSerializer


def _load(workflow: str):
    workflow_path = Path(workflow)

    if not workflow_path.exists():
        print(f"Error: Workflow file not found: {workflow_path}", file=sys.stderr)
        sys.exit(1)

    try:
        graph, _ = WorkflowSerializer().load_workflow(workflow_path)
    except WorkflowFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return workflow_path, graph


def list_steps(args):
    """List all available step kinds"""
    registry = build_registry()

    print("Available Step Kinds:")
    print("=" * 60)
    for info in registry.describe():
        print(f"  {info['kind']:15} - {info['description']}")
        print(f"  {'':15}   default config: {json.dumps(info['default_config'])}")


def execute_workflow(args):
    """Execute a workflow from JSON file"""
    workflow_path, graph = _load(args.workflow)

    config = get_config_manager().effective()
    if args.max_workers is not None:
        config.engine.max_workers = args.max_workers
    if args.filter_url:
        config.filter.service_url = args.filter_url

    print(f"Executing workflow: {workflow_path.name}")
    print(f"Steps: {len(graph.steps)}, Connections: {len(graph.connections)}")
    print("-" * 60)

    executor = WorkflowExecutor(
        registry=registry_from_config(config),
        max_workers=config.engine.max_workers,
    )

    try:
        result = executor.execute_workflow(graph)
    except EngineError as e:
        print_section("Execution Failed")
        print(f"Error: {e}")
        if args.output:
            failure = {"success": False, "error": str(e)}
            if isinstance(e, (StepExecutionError, UnknownStepKindError)):
                failure.update(step_id=e.step_id, label=e.label)
            save_json(failure, Path(args.output))
            print(f"\nResults saved to: {args.output}")
        sys.exit(1)

    print_section("Execution Results")
    for step_id in result.order:
        print(f"  {step_id}: {format_value(result.results[step_id])}")
    print(f"\nTotal Steps: {result.total_steps}")
    print(f"Execution Time: {format_duration(result.execution_time)}")

    if args.output:
        save_json({
            "success": True,
            "results": result.results,
            "order": result.order,
            "execution_time": result.execution_time,
        }, Path(args.output))
        print(f"\nResults saved to: {args.output}")


def validate_workflow(args):
    """Validate a workflow file"""
    workflow_path, graph = _load(args.workflow)

    print(f"Validating workflow: {workflow_path.name}")
    print("-" * 60)

    errors = validate_graph(graph)
    if errors:
        print("Validation Errors:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    print("✓ Workflow is valid")
    print(f"  Steps: {len(graph.steps)}")
    print(f"  Connections: {len(graph.connections)}")


def configure(args):
    """Show, clear or set stored configuration"""
    manager = get_config_manager()

    if args.clear:
        manager.clear_credentials()
        print("Credentials cleared from config file.")
        return

    if args.show:
        print(json.dumps(manager.describe(), indent=2))
        return

    api_key = manager.get_openai_api_key(prompt=True)
    if api_key:
        print(f"OpenAI API key configured. Config file: {manager.CONFIG_FILE}")
    else:
        print("No API key entered; filter steps will use keyword matching.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowrun",
        description="Run step-based data workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('list-steps', help='List all available step kinds')

    execute_parser = subparsers.add_parser('execute', help='Execute a workflow')
    execute_parser.add_argument('workflow', help='Path to workflow JSON file')
    execute_parser.add_argument('--max-workers', type=int, default=None,
                                help='Maximum parallel step executions')
    execute_parser.add_argument('--filter-url', help='Base URL of a remote filter service')
    execute_parser.add_argument('--output', help='Save execution results to file')

    validate_parser = subparsers.add_parser('validate', help='Validate a workflow file')
    validate_parser.add_argument('workflow', help='Path to workflow JSON file')

    config_parser = subparsers.add_parser('config', help='Manage stored configuration')
    group = config_parser.add_mutually_exclusive_group()
    group.add_argument('--show', action='store_true', help='Show current configuration')
    group.add_argument('--clear', action='store_true', help='Clear stored credentials')

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    if args.command == 'list-steps':
        list_steps(args)
    elif args.command == 'execute':
        execute_workflow(args)
    elif args.command == 'validate':
        validate_workflow(args)
    elif args.command == 'config':
        configure(args)


if __name__ == '__main__':
    main()
