"""
Zed Switcher

Floating window-switcher daemon for the Zed editor on macOS.
Serializes AppleScript calls, caches Zed's workspace database and
reconciles open editor windows against the user's project list.
"""

__version__ = "1.0.0"
__author__ = "NixOS Configuration Team"
