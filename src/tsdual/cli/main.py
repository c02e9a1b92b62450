"""
tsdual CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

import click

from ..config import BuildSettings
from .commands import compile as compile_cmd
from .commands import dirs, importmap, merge, release, split, stars
from .utils import configure_logging


@click.group()
@click.version_option(package_name="tsdual")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging (or set TSDUAL_VERBOSE=1)")
def main(verbose: bool):
    """tsdual: dual ESM/CommonJS publishing for TypeScript packages.

    \b
    Source codemods:
      tsdual split-types src
      tsdual fix-import-dirs src
      tsdual split-stars -p some-cjs-package src
      tsdual merge-package -p packages/utils src

    \b
    Build and publish:
      tsdual compile
      tsdual release --dry
      tsdual make-import-map
    """
    configure_logging(verbose or BuildSettings.from_env().verbose)


# Register commands
main.add_command(split.split_types)
main.add_command(stars.split_stars)
main.add_command(dirs.fix_import_dirs)
main.add_command(merge.merge_package)
main.add_command(compile_cmd.compile_package)
main.add_command(release.release)
main.add_command(importmap.make_import_map)

if __name__ == "__main__":
    main()
