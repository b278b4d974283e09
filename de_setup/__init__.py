"""
Desktop Environment Setup
-------------------------------------------------------

Provisions a desktop environment on a bare Debian/Ubuntu or Arch host:
detects the platform, negotiates the richest available terminal UI
(gum, fzf, whiptail or plain console), lets the operator pick a desktop
environment and display manager, then installs everything and reboots.

Note: This tool must be run with root privileges.
"""

APP_NAME = "Desktop Environment Setup"
VERSION = "1.0.0"
