# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""evno: event notifications between Solid pod inboxes."""

__version__ = "0.1.0"
