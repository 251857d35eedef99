"""exoconsole - Exchange Online mailbox administration console

Philosophy:
- One session per run, verified by a live round-trip, never by a flag
- Brick architecture (self-contained modules)
- Credentials stay with Exchange Online's own sign-in
- A failed operation is reported, never fatal

The exoconsole CLI provisions the ExchangeOnlineManagement PowerShell module,
connects once, and offers a menu of calendar and mailbox permission tasks.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
