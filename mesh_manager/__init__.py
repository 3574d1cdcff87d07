# /*
# Copyright 2026 The Mesh Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""mesh_manager - multi-cloud Kubernetes and service-mesh bootstrap package.

Exports the shared ``console`` (rich, on stderr) and the package ``logger``.
"""

from __future__ import annotations

import io
import logging
import threading
from contextlib import contextmanager

from rich.console import Console


class ThreadAwareConsole:
    """Rich console proxy shared by every resource-graph worker thread.

    Graph nodes run concurrently, one per worker thread. While a node runs,
    its prints land in a per-thread buffer; the graph replays the buffer on
    the main thread once the node settles, so each step's output appears as
    one uninterrupted block instead of interleaving with other clusters.
    """

    def __init__(self, real_console: Console) -> None:
        object.__setattr__(self, "_real", real_console)
        object.__setattr__(self, "_local", threading.local())

    def __getattr__(self, name: str):
        target = getattr(self._local, "node_console", self._real)
        return getattr(target, name)

    @contextmanager
    def buffered(self):
        """Capture this thread's console output until the block exits.

        The buffer console keeps the real console's width so replayed panels
        and tables wrap the same way as direct output.
        """
        buf = io.StringIO()
        self._local.node_console = Console(file=buf, stderr=False, width=self._real.width)
        try:
            yield buf
        finally:
            del self._local.node_console


console = ThreadAwareConsole(Console(stderr=True))
logger = logging.getLogger("mesh_manager")
