import heapq
import itertools


class PriorityQueue: # Min-heap of Huffman nodes keyed by (frequency, symbol)
    def __init__(self):
        self._heap = []
        self._counter = itertools.count() # insertion order, keeps equal keys stable

    def __len__(self):
        return len(self._heap)

    def insert(self, node):
        heapq.heappush(self._heap, (node.frequency, node.symbol, next(self._counter), node))

    def extract_min(self):
        if not self._heap:
            raise IndexError("extract_min from an empty priority queue")
        return heapq.heappop(self._heap)[-1]

    def peek(self):
        if not self._heap:
            raise IndexError("peek into an empty priority queue")
        return self._heap[0][-1]
