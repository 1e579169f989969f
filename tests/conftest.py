import pytest

from chip8_vm import Chip8


def program_bytes(*words):
    return b"".join(word.to_bytes(2, "big") for word in words)


@pytest.fixture
def make_vm():
    """Build a VM (fixed RNG seed) with the given opcodes loaded at 0x200."""

    def _make(*words, quirks=None, on_unknown_opcode=None):
        vm = Chip8(quirks=quirks, on_unknown_opcode=on_unknown_opcode, seed=1234)
        vm.load_rom(program_bytes(*words))
        return vm

    return _make
