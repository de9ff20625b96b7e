"""Checksum verification with content diffs for WordPress core and plugins.

Submodules:
- config: environment and CLI configuration
- events: JSON event log and colorized console
- wpcli: WP-CLI wrapper
- classifier: verifier output -> file outcomes
- manifest: plugin manifests and missing-file detection
- fetcher: workspace and official release downloads
- differ: whitespace-insensitive content comparison
- report: run aggregate, failure report and exit decision
- engine: core and plugin verification stages
- kuma: Uptime Kuma push of the result
"""

__version__ = "1.0.0"
