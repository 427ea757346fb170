import logging
import threading
from collections import OrderedDict

from flowgraph.store import FlowGraph


class EditorRegistry:
    """Live FlowGraph per open flow, keyed by flow id.

    The app keeps one instance in ``app.extensions``; request handlers reach
    it through ``current_app`` rather than a module-level global.

    At most ``max_open`` graphs stay in memory. Opening one more closes the
    least recently used graph; its unsaved edits are dropped and the next
    request reopens it from its last save.
    """

    def __init__(self, logger=None, max_open=500):
        self.logger = logger or logging.getLogger(__name__)
        self.max_open = max_open
        self._graphs = OrderedDict()
        self._lock = threading.RLock()

    def __contains__(self, flow_id):
        return flow_id in self._graphs

    def __len__(self):
        return len(self._graphs)

    def get(self, flow_id):
        with self._lock:
            graph = self._graphs.get(flow_id)
            if graph is not None:
                self._graphs.move_to_end(flow_id)
            return graph

    def open(self, flow_id, snapshot=None):
        """Start editing ``flow_id``, from ``snapshot`` if given, else a fresh flow."""
        if snapshot:
            graph = FlowGraph.from_snapshot(snapshot, logger=self.logger)
        else:
            graph = FlowGraph(logger=self.logger)
        self._store(flow_id, graph)
        self.logger.info("Opened editor for flow %s (%d nodes)", flow_id, len(graph.nodes))
        return graph

    def get_or_open(self, flow_id, load_snapshot):
        """Return the live graph, opening it from ``load_snapshot()`` if absent.

        Concurrent callers for the same flow all get the same graph.
        """
        with self._lock:
            graph = self.get(flow_id)
            if graph is None:
                graph = self.open(flow_id, load_snapshot())
            return graph

    def close(self, flow_id):
        with self._lock:
            return self._graphs.pop(flow_id, None) is not None

    def replace(self, flow_id, graph):
        """Swap in an already-built graph, e.g. one loaded from an import."""
        self._store(flow_id, graph)
        self.logger.info("Replaced graph for flow %s (%d nodes)", flow_id, len(graph.nodes))
        return graph

    def _store(self, flow_id, graph):
        with self._lock:
            self._graphs[flow_id] = graph
            self._graphs.move_to_end(flow_id)
            while len(self._graphs) > self.max_open:
                evicted, _ = self._graphs.popitem(last=False)
                self.logger.info("Closed idle editor for flow %s", evicted)
