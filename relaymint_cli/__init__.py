"""
relaymint CLI - relay-funded token deployment

Commands:
- relaymint (no command) - interactive menu
- relaymint --all - full deployment, then status
- relaymint run / step / dry-run - deployment steps
- relaymint status - live deployment status
- relaymint rollback - delete local checkpoint
- relaymint init - write .env.sample
"""

__version__ = "0.1.0"
