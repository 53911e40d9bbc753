"""
Tandem Browser - Two-tier browser automation.

Routes page actions either to a private hidden Chromium driven by Playwright
or to the user's own browser attached over the Chrome DevTools Protocol.
"""

__version__ = "0.1.0"
__author__ = "Tandem Browser Contributors"
