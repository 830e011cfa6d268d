from typing import Dict

from pqueue import PriorityQueue
from store_errors import CorruptError, InvalidArgumentError

INTERNAL_SYMBOL = '$' # placeholder carried by internal nodes
SPACE_SYMBOL = '_' # space is counted, coded and serialized under this symbol
MAX_SYMBOL = 0xFF # single-byte repertoire


class HuffmanNode: # Node for Huffman tree
    def __init__(self, symbol, frequency, left=None, right=None):
        self.symbol = symbol    # character, or INTERNAL_SYMBOL for internal nodes
        self.frequency = frequency
        self.left = left
        self.right = right

    @property
    def is_leaf(self):
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f"Leaf({self.symbol!r}, {self.frequency})"
        return f"Internal({self.frequency}, {self.left!r}, {self.right!r})"


def frequency_table(text: str) -> Dict[str, int]: # text: record store content
    """
    Count symbol occurrences, folding space into SPACE_SYMBOL.

    Raises InvalidArgumentError for characters outside the supported repertoire:
    the substitute symbol itself and anything above one byte.
    """
    table: Dict[str, int] = {}
    for ch in text:
        if ch == SPACE_SYMBOL or ord(ch) > MAX_SYMBOL:
            raise InvalidArgumentError(f"unsupported character {ch!r} in record text")
        symbol = SPACE_SYMBOL if ch == ' ' else ch
        table[symbol] = table.get(symbol, 0) + 1
    return table


def build_huffman_tree(frequency_table): # frequency_table: dict of symbol -> frequency
    if not frequency_table:
        raise ValueError("cannot build a Huffman tree from an empty frequency table")

    priority_queue = PriorityQueue()
    for symbol, frequency in frequency_table.items():
        priority_queue.insert(HuffmanNode(symbol, frequency))

    # Merge the two cheapest nodes until only the root remains
    while len(priority_queue) > 1:
        left = priority_queue.extract_min()
        right = priority_queue.extract_min()
        priority_queue.insert(HuffmanNode(INTERNAL_SYMBOL, left.frequency + right.frequency, left, right))

    return priority_queue.extract_min() # root of the tree


def generate_huffman_codes(root): # root: root of the Huffman tree
    codes = {}
    def generate_codes_helper(node, current_code): # walk the tree, '0' to the left and '1' to the right
        if node.is_leaf:
            codes[node.symbol] = current_code or '0' # a lone leaf still needs a one-bit code
            return

        generate_codes_helper(node.left, current_code + '0')
        generate_codes_helper(node.right, current_code + '1')

    generate_codes_helper(root, '')
    return codes # return the mapping of symbols to their corresponding Huffman codes


def huffman_encode(text: str, code_map: dict) -> str: # text: input to encode, code_map: dict of symbol -> Huffman code
    bits = []
    for ch in text:
        symbol = SPACE_SYMBOL if ch == ' ' else ch
        code = code_map.get(symbol)
        if code is None:
            raise CorruptError(f"symbol {ch!r} has no code in the code table")
        bits.append(code)
    return ''.join(bits)


def huffman_decode(bitstring: str, root) -> str: # bitstring: string of '0's and '1's, root: root of the Huffman tree
    decoded = []

    if root.is_leaf: # single-symbol tree, every '0' is one occurrence
        for bit in bitstring:
            if bit != '0':
                raise CorruptError(f"unexpected bit {bit!r} for a single-symbol tree")
            decoded.append(root.symbol)
        return ''.join(decoded).replace(SPACE_SYMBOL, ' ')

    current_node = root
    for bit in bitstring:
        if bit == '0':
            current_node = current_node.left
        elif bit == '1':
            current_node = current_node.right
        else:
            raise CorruptError(f"invalid bit {bit!r} in encoded blob")

        if current_node.is_leaf: # reached a leaf
            decoded.append(current_node.symbol)
            current_node = root # reset to the root for the next symbol

    if current_node is not root:
        raise CorruptError("encoded blob ends in the middle of a code")

    return ''.join(decoded).replace(SPACE_SYMBOL, ' ')


def leaf_frequencies(root) -> Dict[str, int]: # frequency table stored in a tree's leaves
    table: Dict[str, int] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            table[node.symbol] = table.get(node.symbol, 0) + node.frequency
        else:
            stack.append(node.right)
            stack.append(node.left)
    return table
