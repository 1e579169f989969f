from __future__ import annotations

import pytest

from chip8_vm import Chip8, Quirks


def step(vm: Chip8, count: int) -> None:
    for _ in range(count):
        vm.tick_cpu()


# ---- Flow control ----

def test_jump(make_vm) -> None:
    vm = make_vm(0x1234)
    step(vm, 1)
    assert vm.pc == 0x234


@pytest.mark.parametrize(
    "words, expected_pc",
    [
        ((0x6042, 0x3042), 0x206),  # Vx == kk, skip
        ((0x6042, 0x3043), 0x204),
        ((0x6042, 0x4043), 0x206),  # Vx != kk, skip
        ((0x6042, 0x4042), 0x204),
        ((0x6042, 0x6142, 0x5010), 0x208),
        ((0x6042, 0x6143, 0x5010), 0x206),
        ((0x6042, 0x6143, 0x9010), 0x208),
        ((0x6042, 0x6142, 0x9010), 0x206),
    ],
)
def test_conditional_skips(make_vm, words, expected_pc) -> None:
    vm = make_vm(*words)
    step(vm, len(words))
    assert vm.pc == expected_pc


def test_jump_with_v0_offset(make_vm) -> None:
    vm = make_vm(0x6004, 0x6310, 0xB300)
    step(vm, 3)
    assert vm.pc == 0x304


def test_jump_with_vx_offset_quirk(make_vm) -> None:
    vm = make_vm(0x6004, 0x6310, 0xB300, quirks=Quirks(jump_vx=True))
    step(vm, 3)
    assert vm.pc == 0x310


# ---- Registers ----

def test_load_and_add_immediate_wraps_without_flag(make_vm) -> None:
    vm = make_vm(0x6AFF, 0x7A02)
    step(vm, 2)
    assert vm.V[0xA] == 0x01
    assert vm.V[0xF] == 0


@pytest.mark.parametrize(
    "sub, expected",
    [
        (0x0, 0x0F),
        (0x1, 0x3F),
        (0x2, 0x0C),
        (0x3, 0x33),
    ],
)
def test_logic_ops(make_vm, sub, expected) -> None:
    vm = make_vm(0x613C, 0x620F, 0x8120 | sub)
    step(vm, 3)
    assert vm.V[1] == expected
    assert vm.V[2] == 0x0F


def test_add_with_carry(make_vm) -> None:
    vm = make_vm(0x61FA, 0x620A, 0x8124)
    step(vm, 3)
    assert vm.V[1] == 4
    assert vm.V[0xF] == 1


def test_add_without_carry(make_vm) -> None:
    vm = make_vm(0x6101, 0x620A, 0x8124)
    step(vm, 3)
    assert vm.V[1] == 11
    assert vm.V[0xF] == 0


def test_sub_with_borrow(make_vm) -> None:
    vm = make_vm(0x610A, 0x62FA, 0x8125)
    step(vm, 3)
    assert vm.V[1] == 16
    assert vm.V[0xF] == 0


def test_sub_of_equal_values_does_not_borrow(make_vm) -> None:
    vm = make_vm(0x6107, 0x6207, 0x8125)
    step(vm, 3)
    assert vm.V[1] == 0
    assert vm.V[0xF] == 1


def test_reverse_sub(make_vm) -> None:
    vm = make_vm(0x610A, 0x62FA, 0x8127)
    step(vm, 3)
    assert vm.V[1] == 240
    assert vm.V[0xF] == 1


def test_reverse_sub_with_borrow(make_vm) -> None:
    vm = make_vm(0x61FA, 0x620A, 0x8127)
    step(vm, 3)
    assert vm.V[1] == 16
    assert vm.V[0xF] == 0


def test_flag_is_written_after_result_when_x_is_vf(make_vm) -> None:
    vm = make_vm(0x6FC8, 0x6164, 0x8F14)
    step(vm, 3)
    # 200 + 100 carries; the flag overwrites the sum
    assert vm.V[0xF] == 1


@pytest.mark.parametrize(
    "quirks, sub, expected_vx, expected_vf",
    [
        (Quirks(), 0x6, 0x40, 1),
        (Quirks(shift_vy=True), 0x6, 0x01, 1),
        (Quirks(), 0xE, 0x02, 1),
        (Quirks(shift_vy=True), 0xE, 0x06, 0),
    ],
)
def test_shifts(make_vm, quirks, sub, expected_vx, expected_vf) -> None:
    vm = make_vm(0x6181, 0x6203, 0x8120 | sub, quirks=quirks)
    step(vm, 3)
    assert vm.V[1] == expected_vx
    assert vm.V[0xF] == expected_vf


def test_random_is_masked(make_vm) -> None:
    vm = make_vm(0xC00F, 0xC100)
    step(vm, 2)
    assert vm.V[0] <= 0x0F
    assert vm.V[1] == 0


def test_random_is_reproducible_with_a_seed() -> None:
    a = Chip8(seed=7)
    b = Chip8(seed=7)
    program = bytes([0xC0, 0xFF, 0xC1, 0xFF, 0xC2, 0xFF])
    a.load_rom(program)
    b.load_rom(program)
    step(a, 3)
    step(b, 3)
    assert a.V[:3] == b.V[:3]


# ---- Index register and memory ----

def test_set_index(make_vm) -> None:
    vm = make_vm(0xA123)
    step(vm, 1)
    assert vm.I == 0x123


def test_add_to_index_flags_overflow(make_vm) -> None:
    vm = make_vm(0xAFFF, 0x6001, 0xF01E)
    step(vm, 3)
    assert vm.I == 0x1000
    assert vm.V[0xF] == 1


def test_add_to_index_without_overflow(make_vm) -> None:
    vm = make_vm(0xA100, 0x6F10, 0xFF1E)
    step(vm, 3)
    assert vm.I == 0x110
    assert vm.V[0xF] == 0


def test_font_address(make_vm) -> None:
    vm = make_vm(0x600A, 0xF029)
    step(vm, 2)
    assert vm.I == 50


@pytest.mark.parametrize(
    "value, digits",
    [(255, [2, 5, 5]), (7, [0, 0, 7]), (100, [1, 0, 0])],
)
def test_bcd(make_vm, value, digits) -> None:
    vm = make_vm(0xA300, 0x6500 | value, 0xF533)
    step(vm, 3)
    assert vm.memory[0x300:0x303] == digits
    assert vm.I == 0x300


def test_store_then_load_restores_registers(make_vm) -> None:
    vm = make_vm(0xA300, 0x6011, 0x6122, 0x6233, 0x6344, 0xF355, 0xF365)
    step(vm, 6)
    assert vm.memory[0x300:0x305] == [0x11, 0x22, 0x33, 0x44, 0]
    assert vm.I == 0x300

    vm.V[:4] = [0, 0, 0, 0]
    step(vm, 1)
    assert vm.V[:4] == [0x11, 0x22, 0x33, 0x44]
    assert vm.I == 0x300


def test_store_and_load_advance_index_with_quirk(make_vm) -> None:
    vm = make_vm(0xA300, 0x6011, 0x6122, 0xF155, 0xF165, quirks=Quirks(increment_index=True))
    step(vm, 4)
    assert vm.I == 0x302
    step(vm, 1)
    assert vm.I == 0x304
    assert vm.V[:2] == [0, 0]


def test_load_only_touches_v0_to_vx(make_vm) -> None:
    vm = make_vm(0xA300, 0x6577, 0xF165)
    vm.memory[0x300:0x302] = [9, 8]
    step(vm, 3)
    assert vm.V[:2] == [9, 8]
    assert vm.V[5] == 0x77


def test_store_wraps_at_end_of_memory(make_vm) -> None:
    vm = make_vm(0xAFFF, 0x6011, 0x6122, 0xF155)
    step(vm, 4)
    assert vm.memory[0xFFF] == 0x11
    # address 0x000 is font memory and stays intact
    assert vm.memory[0x000] == 0xF0


def test_font_memory_is_write_protected(make_vm) -> None:
    vm = make_vm(0xA000, 0x60AA, 0xF055, 0xF033)
    step(vm, 4)
    assert vm.memory[:3] == [0xF0, 0x90, 0x90]


def test_set_timers_from_registers(make_vm) -> None:
    vm = make_vm(0x6020, 0x6130, 0xF015, 0xF118)
    step(vm, 4)
    assert vm.delay_timer == 0x20
    assert vm.sound_timer == 0x30
