# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = "casfile"
__summary__ = "Atomic writes and verified reads of content-addressable files."
__url__ = "https://github.com/weedonandscott/casfile"

__version__ = "0.1.0"

__install_requires__ = ["anyio>=4.0", "blake3>=0.3"]
__tests_require__ = ["tox", "pytest"]

__author__ = "Weedon & Scott Studios"
__email__ = "Studios@WeedonAndScott.com"

__license__ = "MIT License"
