"""Project configuration handlers for schemapipe."""

from pathlib import Path

from schemapipe.config.project import ProjectConfig
from schemapipe.core.registry import SchemaRegistry


async def init_project(registry: SchemaRegistry | None, args: dict) -> dict:
    """Initialize project configuration"""
    output_dir = args.get("output_dir", ".")
    default_draft = args.get("default_draft", "2020-12")

    fetch_config = {}
    if "fetch_timeout" in args:
        fetch_config["timeout"] = float(args["fetch_timeout"])

    config_manager = ProjectConfig(Path(output_dir))

    # Check if already initialized
    if config_manager.exists():
        existing = config_manager.load()
        return {
            "success": False,
            "error": "Project already initialized",
            "existing_config": existing,
            "hint": "Use get_project_config to view current config"
        }

    config = config_manager.init(
        default_draft=default_draft,
        use_defaults=args.get("use_defaults"),
        remove_additional=args.get("remove_additional"),
        fetch_config=fetch_config or None,
    )

    return {
        "success": True,
        "config": config,
        "config_file": str(config_manager.config_file)
    }


async def get_project_config(registry: SchemaRegistry | None, args: dict) -> dict:
    """Get current project configuration"""
    output_dir = args.get("output_dir", ".")

    config_manager = ProjectConfig(Path(output_dir))

    if not config_manager.exists():
        return {
            "initialized": False,
            "config": config_manager.load(),  # Returns defaults
            "hint": "Run init_project to create config file"
        }

    return {
        "initialized": True,
        "config": config_manager.load(),
        "config_file": str(config_manager.config_file)
    }


# Handler registry
HANDLERS = {
    "init_project": init_project,
    "get_project_config": get_project_config,
}
