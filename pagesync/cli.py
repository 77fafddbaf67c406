import json
from pathlib import Path

import click


@click.group()
def main() -> None:
    """pagesync - Reconcile a content repository's CMS configuration."""


def _build_manager(repo_dir: str):
    from pagesync.engine.git import LocalGitService, RepoScanner
    from pagesync.engine.log import setup_logging
    from pagesync.engine.manager import ConfigManager
    from pagesync.engine.settings import get_settings
    from pagesync.engine.store import FileStorage

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    git = LocalGitService(repo_dir)
    return ConfigManager(
        git=git,
        scanner=RepoScanner(git),
        storage=FileStorage(settings.cache_path),
        config_path=settings.config_path,
        default_language=settings.language,
    )


def _repository_id(repo_dir: str, repository_id: str | None) -> str:
    return repository_id or Path(repo_dir).resolve().name


_repo_dir = click.argument("repo_dir", type=click.Path(exists=True, file_okay=False))
_repo_id = click.option("--repository-id", default=None, help="Cache key for the repository (default: directory name).")


@main.command("open")
@_repo_dir
@_repo_id
def open_repo(repo_dir: str, repository_id: str | None) -> None:
    """Reconcile settings for REPO_DIR and print the result."""
    import asyncio

    manager = _build_manager(repo_dir)
    result = asyncio.run(manager.open(_repository_id(repo_dir, repository_id)))
    snapshot = manager.snapshot()

    click.echo(f"Source:         {result.source}")
    click.echo(f"Setup complete: {'yes' if result.setup_complete else 'no'}")
    click.echo(f"Phase:          {snapshot.scan_phase or '-'} ({snapshot.scan_progress}%)")
    click.echo(f"Posts path:     {snapshot.effective_posts_path or '-'}")
    click.echo(f"Images path:    {snapshot.effective_images_path or '-'}")
    if snapshot.workspace is not None:
        for collection in snapshot.workspace.collections:
            marker = "*" if collection.id == snapshot.workspace.active_collection_id else " "
            click.echo(f"  {marker} {collection.name} ({collection.posts_path}, {collection.images_path})")
    if result.suggested_post_paths:
        click.echo("Suggested posts directories:  " + ", ".join(result.suggested_post_paths))
    if result.suggested_image_paths:
        click.echo("Suggested images directories: " + ", ".join(result.suggested_image_paths))
    if result.message:
        raise click.ClickException(result.message)


@main.command("export")
@_repo_dir
@_repo_id
def export_config(repo_dir: str, repository_id: str | None) -> None:
    """Print the configuration of REPO_DIR as JSON."""
    import asyncio

    manager = _build_manager(repo_dir)
    asyncio.run(manager.open(_repository_id(repo_dir, repository_id)))
    click.echo(json.dumps(manager.export_config(), indent=2, ensure_ascii=False))


@main.command("import")
@_repo_dir
@click.argument("file", type=click.File("r", encoding="utf-8"))
@_repo_id
def import_config(repo_dir: str, file, repository_id: str | None) -> None:
    """Write an exported configuration FILE into REPO_DIR."""
    import asyncio

    from pagesync.engine.manager import ConfigImportError

    manager = _build_manager(repo_dir)

    async def _run() -> bool:
        await manager.open(_repository_id(repo_dir, repository_id))
        return await manager.import_config(file.read())

    try:
        ok = asyncio.run(_run())
    except ConfigImportError as exc:
        raise click.ClickException(str(exc)) from None
    if not ok:
        raise click.ClickException(f"Could not write {manager.remote.path}")
    click.echo(f"Imported configuration into {manager.remote.path}.")


@main.command("reset")
@_repo_dir
@_repo_id
@click.confirmation_option(prompt="Delete the config file and all cached settings?")
def reset(repo_dir: str, repository_id: str | None) -> None:
    """Delete the config file of REPO_DIR and purge its cached settings."""
    import asyncio

    manager = _build_manager(repo_dir)

    async def _run() -> bool:
        await manager.open(_repository_id(repo_dir, repository_id))
        return await manager.delete_config()

    if not asyncio.run(_run()):
        raise click.ClickException(f"Could not delete {manager.remote.path}")
    click.echo("Configuration deleted.")


if __name__ == "__main__":
    main()
