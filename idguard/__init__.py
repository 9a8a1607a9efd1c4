"""
idguard - secure command execution and path validation for git identity switching.

Runs exactly three external programs (git, ssh-add, ssh-keygen) by absolute
path with argument vectors, never through a shell, and records every rejected
or failed invocation to a redacted, size-rotated security log.

Usage:
    from idguard.config import load_settings, build_runtime

    runtime = build_runtime(load_settings())
    result = await runtime.executor.git_exec(["config", "--local", "user.name"])
"""

__version__ = "0.4.0"
