# CHIP8 Virtual Machine:
# Input - 16 key states, pushed in by whoever drives the VM before each cpu tick.
# Output - 64x32 display buffer (every pixel is either on or off (0 || 1)) & a redraw flag.
# CPU - Cowgods CHIP8 Technical reference http://devernay.free.fr/hacks/chip8/C8TECH10.HTM#0.0
# Memory - 4096 bytes which includes: the fonts (at 0x000) and the inputted ROM (at 0x200).
#----------------------------------------------------------------------------------------------
# The VM does no I/O and keeps no clock of its own. tick_cpu() runs exactly one
# instruction and tick_timers() is the 60Hz timer decrement, the driver decides
# how often each one gets called (see chip8_emulator.py).
#----------------------------------------------------------------------------------------------

import random
from dataclasses import dataclass


# ---- Configuration ----
WIDTH, HEIGHT = 64, 32
MEMORY_SIZE = 4096
PROGRAM_START = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START  # 3584 bytes
STACK_DEPTH = 16
NUM_KEYS = 16

#make it true if you want the logs
logsOn = False

def log(*args):
    if logsOn:
        print(*args)

def set_logging(on):
    global logsOn
    logsOn = bool(on)

# Standard CHIP-8 fontset (80 bytes), glyph for digit d lives at [5d, 5d+5)
FONTSET = [
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80   # F
] #notice 80 bytes
FONT_END = len(FONTSET)


# ---- Errors ----
class Chip8Error(Exception):
    """Base class for everything the VM reports back to its driver."""


class RomTooLarge(Chip8Error):
    def __init__(self, size):
        super().__init__("ROM is %d bytes, the limit is %d" % (size, MAX_ROM_SIZE))
        self.size = size
        self.limit = MAX_ROM_SIZE


class ExecutionError(Chip8Error):
    """A fault while executing; the VM is halted once one of these is raised."""

    def __init__(self, message, pc, opcode=None):
        super().__init__(message)
        self.pc = pc
        self.opcode = opcode


class StackOverflow(ExecutionError):
    def __init__(self, pc, opcode):
        super().__init__("Stack overflow on CALL at 0x%03X (%04X)" % (pc, opcode), pc, opcode)


class StackUnderflow(ExecutionError):
    def __init__(self, pc, opcode):
        super().__init__("Stack underflow on RET at 0x%03X (%04X)" % (pc, opcode), pc, opcode)


class FetchOutOfBounds(ExecutionError):
    def __init__(self, pc):
        super().__init__("PC out of bounds: 0x%03X" % pc, pc)


def unknown_opcode(opcode):
    print("Unknown opcode: %04X" % opcode)


@dataclass(frozen=True)
class Quirks:
    """Which historical interpretation the VM follows for the ambiguous opcodes.

    increment_index -- Fx55/Fx65 leave I pointing past the last register (I += x + 1).
    shift_vy        -- 8xy6/8xyE shift Vy into Vx instead of shifting Vx in place.
    jump_vx         -- Bnnn jumps to nnn + Vx (x = high nibble of nnn) instead of nnn + V0.
    """
    increment_index: bool = False
    shift_vy: bool = False
    jump_vx: bool = False


class Chip8:
    def __init__(self, quirks=None, on_unknown_opcode=None, seed=None):
        self.quirks = quirks if quirks is not None else Quirks()
        self.on_unknown_opcode = on_unknown_opcode or unknown_opcode
        self.rng = random.Random(seed)

        # ---- CPU state ----
        self.memory = [0] * MEMORY_SIZE
        self.V = [0] * 16               # registers V0..VF
        self.I = 0                      # index register (memory pointer)
        self.pc = PROGRAM_START         # program counter starts at 0x200
        self.stack = [0] * STACK_DEPTH
        self.sp = 0                     # next free stack slot
        self.delay_timer = 0
        self.sound_timer = 0
        self.display_buffer = [0] * (WIDTH * HEIGHT)  # 64x32 screen, row-major
        self.key_inputs = [False] * NUM_KEYS
        self.should_draw = False
        self.waiting_for_key = False
        self.halted = False
        self.fault = None
        self.cycle_count = 0

        # decoded fields of the instruction being executed
        self.opcode = 0
        self.x = self.y = self.n = self.kk = self.nnn = 0
        self.next_pc = self.pc

        # Load fontset into memory
        for i, b in enumerate(FONTSET):
            self.memory[i] = b

        # Prepare opcode function map
        self.setup_funcmap()

    # ---- Load ROM ----
    def load_rom(self, data):
        data = bytes(data)
        if len(data) > MAX_ROM_SIZE:
            raise RomTooLarge(len(data))
        log("ROM size: %d bytes" % len(data))
        self.memory[PROGRAM_START:PROGRAM_START + len(data)] = data

    # ---- Input ----
    def set_keys(self, keys):
        keys = [bool(k) for k in keys]
        if len(keys) != NUM_KEYS:
            raise ValueError("expected %d key states, got %d" % (NUM_KEYS, len(keys)))
        self.key_inputs = keys

    # ---- Output ----
    @property
    def framebuffer(self):
        return bytes(self.display_buffer)

    def pixel(self, x, y):
        if not (0 <= x < WIDTH and 0 <= y < HEIGHT):
            raise IndexError("pixel (%d, %d) is off screen" % (x, y))
        return self.display_buffer[y * WIDTH + x]

    def clear_redraw(self):
        self.should_draw = False

    # ---- Timers ----
    def tick_timers(self):
        if self.delay_timer > 0:
            self.delay_timer -= 1
        if self.sound_timer > 0:
            self.sound_timer -= 1

    # ---- Cycle ----
    def tick_cpu(self):
        """Fetch, decode and execute one instruction; returns the opcode that ran.

        Raises the ExecutionError that halted the VM, before touching any state,
        on this and every later call.
        """
        if self.halted:
            raise self.fault
        try:
            self.opcode = self._fetch()

            self.x = (self.opcode & 0x0F00) >> 8
            self.y = (self.opcode & 0x00F0) >> 4
            self.n = self.opcode & 0x000F
            self.kk = self.opcode & 0x00FF
            self.nnn = self.opcode & 0x0FFF
            self.next_pc = (self.pc + 2) & 0xFFFF

            self.funcmap[self.opcode & 0xF000]()
        except ExecutionError as e:
            self.halted = True
            self.fault = e
            raise

        self.pc = self.next_pc
        self.cycle_count += 1
        return self.opcode

    def _fetch(self):
        # guard pc bounds
        if self.pc + 1 >= MEMORY_SIZE:
            raise FetchOutOfBounds(self.pc)
        return (self.memory[self.pc] << 8) | self.memory[self.pc + 1]

    def _skip_if(self, condition):
        if condition:
            self.next_pc = (self.pc + 4) & 0xFFFF

    def _store(self, addr, value):
        addr %= MEMORY_SIZE
        if addr < FONT_END:
            log(f"Dropped write of {value} to font memory at 0x{addr:03X}")
            return
        self.memory[addr] = value

    def _unknown(self):
        self.on_unknown_opcode(self.opcode)

    # ---- Opcode function map ----
    def setup_funcmap(self):
        self.funcmap = {
            0x0000: self._0xxx,  # 00E0 / 00EE - Clear the screen / Return from a subroutine
            0x1000: self._1nnn,  # 1nnn - Jump to a specific memory address
            0x2000: self._2nnn,  # 2nnn - Call a function (subroutine) at a memory address
            0x3000: self._3xkk,  # 3xkk - Skip next instruction if a register equals a specific number
            0x4000: self._4xkk,  # 4xkk - Skip next instruction if a register does NOT equal a number
            0x5000: self._5xy0,  # 5xy0 - Skip next instruction if two registers are equal
            0x6000: self._6xkk,  # 6xkk - Set a register to a specific number
            0x7000: self._7xkk,  # 7xkk - Add a number to a register
            0x8000: self._8xxx,  # 8xy0..8xyE - Math and logic operations between two registers
            0x9000: self._9xy0,  # 9xy0 - Skip next instruction if two registers are NOT equal
            0xA000: self._Annn,  # Annn - Set a special memory pointer (I) to a specific address
            0xB000: self._Bnnn,  # Bnnn - Jump to an address plus the value of a register
            0xC000: self._Cxkk,  # Cxkk - Set a register to a random number ANDed with a value
            0xD000: self._Dxyn,  # Dxyn - Draw a small image (sprite) on the screen at X,Y coordinates
            0xE000: self._Exxx,  # Ex9E / ExA1 - Skip next instruction if a key is pressed or not pressed
            0xF000: self._Fxxx,  # Fx07..Fx65 - timers, memory storage, and waiting for keys
        }
        # second level tables, keyed on the low byte (0, E, F) or low nibble (8)
        self.funcmap_0 = {
            0xE0: self._00E0,
            0xEE: self._00EE,
        }
        self.funcmap_8 = {
            0x0: self._8xy0,
            0x1: self._8xy1,
            0x2: self._8xy2,
            0x3: self._8xy3,
            0x4: self._8xy4,
            0x5: self._8xy5,
            0x6: self._8xy6,
            0x7: self._8xy7,
            0xE: self._8xyE,
        }
        self.funcmap_E = {
            0x9E: self._Ex9E,
            0xA1: self._ExA1,
        }
        self.funcmap_F = {
            0x07: self._Fx07,
            0x0A: self._Fx0A,
            0x15: self._Fx15,
            0x18: self._Fx18,
            0x1E: self._Fx1E,
            0x29: self._Fx29,
            0x33: self._Fx33,
            0x55: self._Fx55,
            0x65: self._Fx65,
        }

    def _0xxx(self):
        # 0nnn (machine code SYS call) is not supported
        self.funcmap_0.get(self.kk, self._unknown)()

    def _8xxx(self):
        self.funcmap_8.get(self.n, self._unknown)()

    def _Exxx(self):
        self.funcmap_E.get(self.kk, self._unknown)()

    def _Fxxx(self):
        self.funcmap_F.get(self.kk, self._unknown)()

    # ---- Opcode Handlers ----

    # 00E0 - CLS
    def _00E0(self):
        self.display_buffer = [0] * (WIDTH * HEIGHT)
        self.should_draw = True
        log("Clear the display (all pixels turned off)")

    # 00EE - RET
    def _00EE(self):
        if self.sp == 0:
            raise StackUnderflow(self.pc, self.opcode)
        self.sp -= 1
        self.next_pc = self.stack[self.sp]
        log("Return to", hex(self.next_pc))

    # 1nnn - Jump to address NNN
    def _1nnn(self):
        self.next_pc = self.nnn
        log("Jump to address", hex(self.nnn))

    # 2nnn - Call subroutine at NNN
    def _2nnn(self):
        if self.sp == STACK_DEPTH:
            raise StackOverflow(self.pc, self.opcode)
        self.stack[self.sp] = self.next_pc
        self.sp += 1
        self.next_pc = self.nnn
        log("Call subroutine at", hex(self.nnn))

    # 3xkk - Skip next instruction if Vx == kk
    def _3xkk(self):
        self._skip_if(self.V[self.x] == self.kk)
        log(f"Skip next instruction if V{self.x:X} == {self.kk}")

    # 4xkk - Skip next instruction if Vx != kk
    def _4xkk(self):
        self._skip_if(self.V[self.x] != self.kk)
        log(f"Skip next instruction if V{self.x:X} != {self.kk}")

    # 5xy0 - Skip next instruction if Vx == Vy (the low nibble is not checked)
    def _5xy0(self):
        self._skip_if(self.V[self.x] == self.V[self.y])
        log(f"Skip next instruction if V{self.x:X} == V{self.y:X}")

    # 6xkk - Set Vx = kk
    def _6xkk(self):
        self.V[self.x] = self.kk
        log(f"Set V{self.x:X} = {self.kk}")

    # 7xkk - Add immediate, no carry flag
    def _7xkk(self):
        self.V[self.x] = (self.V[self.x] + self.kk) & 0xFF
        log(f"Add {self.kk} to V{self.x:X}: {self.V[self.x]}")

    # 8xy0..8xyE
    # VF is written last, from flags computed on the original operands,
    # so for x == F the flag wins over the result.
    def _alu_result(self, value, flag):
        self.V[self.x] = value & 0xFF
        self.V[0xF] = flag

    def _8xy0(self):
        self.V[self.x] = self.V[self.y]
        log(f"Copy V{self.y:X} into V{self.x:X}")

    def _8xy1(self):
        self.V[self.x] |= self.V[self.y]
        log(f"V{self.x:X} = V{self.x:X} OR V{self.y:X} -> {self.V[self.x]}")

    def _8xy2(self):
        self.V[self.x] &= self.V[self.y]
        log(f"V{self.x:X} = V{self.x:X} AND V{self.y:X} -> {self.V[self.x]}")

    def _8xy3(self):
        self.V[self.x] ^= self.V[self.y]
        log(f"V{self.x:X} = V{self.x:X} XOR V{self.y:X} -> {self.V[self.x]}")

    def _8xy4(self):
        total = self.V[self.x] + self.V[self.y]
        self._alu_result(total, 1 if total > 0xFF else 0)
        log(f"Add V{self.y:X} to V{self.x:X}: result {self.V[self.x]}, carry={self.V[0xF]}")

    def _8xy5(self):
        vx, vy = self.V[self.x], self.V[self.y]
        self._alu_result(vx - vy, 1 if vx >= vy else 0)
        log(f"Subtract V{self.y:X} from V{self.x:X}: result {self.V[self.x]}, NOT borrow={self.V[0xF]}")

    def _8xy6(self):
        src = self.V[self.y] if self.quirks.shift_vy else self.V[self.x]
        self._alu_result(src >> 1, src & 1)
        log(f"Shift V{self.x:X} right by 1: {self.V[self.x]}, least significant bit={self.V[0xF]}")

    def _8xy7(self):
        vx, vy = self.V[self.x], self.V[self.y]
        self._alu_result(vy - vx, 1 if vy >= vx else 0)
        log(f"Set V{self.x:X} = V{self.y:X} - V{self.x:X}: result {self.V[self.x]}, NOT borrow={self.V[0xF]}")

    def _8xyE(self):
        src = self.V[self.y] if self.quirks.shift_vy else self.V[self.x]
        self._alu_result(src << 1, (src >> 7) & 1)
        log(f"Shift V{self.x:X} left by 1: {self.V[self.x]}, most significant bit={self.V[0xF]}")

    # 9xy0 - Skip next instruction if Vx != Vy
    def _9xy0(self):
        if self.n != 0:
            self._unknown()
            return
        self._skip_if(self.V[self.x] != self.V[self.y])
        log(f"Skip next instruction if V{self.x:X} != V{self.y:X}")

    # Annn - Set I = NNN
    def _Annn(self):
        self.I = self.nnn
        log(f"Set I = {self.I:03X}")

    # Bnnn - Jump to address NNN + V0 (or + Vx with the jump_vx quirk)
    def _Bnnn(self):
        reg = (self.nnn >> 8) if self.quirks.jump_vx else 0
        self.next_pc = self.nnn + self.V[reg]
        log(f"Jump to address V{reg:X} + {self.nnn:03X} = {self.next_pc:03X}")

    # Cxkk - RND Vx, byte
    def _Cxkk(self):
        self.V[self.x] = self.rng.getrandbits(8) & self.kk
        log(f"Set V{self.x:X} = random_byte & {self.kk} -> {self.V[self.x]}")

    # Dxyn - DRW Vx, Vy, nibble
    def _Dxyn(self):
        px = self.V[self.x]
        py = self.V[self.y]
        buf = self.display_buffer
        collision = 0
        for row in range(self.n):
            sprite = self.memory[(self.I + row) % MEMORY_SIZE]
            if sprite == 0:
                continue
            base = ((py + row) % HEIGHT) * WIDTH
            for bit in range(8):
                if sprite & (0x80 >> bit):
                    idx = base + (px + bit) % WIDTH
                    if buf[idx]:
                        collision = 1
                    buf[idx] ^= 1
        self.V[0xF] = collision
        self.should_draw = True
        log(f"Drew sprite at ({px}, {py}), collision={collision}")

    # Ex9E / ExA1 - SKP / SKNP
    def _key_pressed(self, key):
        # anything above 0xF names no key, so it is never pressed
        return key < NUM_KEYS and self.key_inputs[key]

    def _Ex9E(self):
        self._skip_if(self._key_pressed(self.V[self.x]))

    def _ExA1(self):
        self._skip_if(not self._key_pressed(self.V[self.x]))

    # Fx07 - Vx = delay_timer
    def _Fx07(self):
        self.V[self.x] = self.delay_timer

    # Fx0A - LD Vx, K: wait for a key press
    def _Fx0A(self):
        for key, pressed in enumerate(self.key_inputs):
            if pressed:
                self.V[self.x] = key
                self.waiting_for_key = False
                log(f"Key {key:X} pressed, stored in V{self.x:X}")
                return
        # stall, this same instruction runs again next tick
        self.waiting_for_key = True
        self.next_pc = self.pc

    def _Fx15(self):
        self.delay_timer = self.V[self.x]

    def _Fx18(self):
        self.sound_timer = self.V[self.x]

    # Fx1E - I = I + Vx, VF flags an overflow past 0xFFF
    def _Fx1E(self):
        total = self.I + self.V[self.x]
        self.I = total & 0xFFFF
        self.V[0xF] = 1 if total > 0xFFF else 0

    # Fx29 - I = address of the font glyph for Vx
    def _Fx29(self):
        self.I = 5 * self.V[self.x]

    # Fx33 - BCD of Vx into memory[I..I+3]
    def _Fx33(self):
        val = self.V[self.x]
        self._store(self.I, val // 100)
        self._store(self.I + 1, (val // 10) % 10)
        self._store(self.I + 2, val % 10)
        log(f"Stored BCD of V{self.x:X} ({val}) at {self.I:03X}")

    # Fx55 - Store V0..Vx at memory[I..]
    def _Fx55(self):
        for i in range(self.x + 1):
            self._store(self.I + i, self.V[i])
        if self.quirks.increment_index:
            self.I = (self.I + self.x + 1) & 0xFFFF

    # Fx65 - Load V0..Vx from memory[I..]
    def _Fx65(self):
        for i in range(self.x + 1):
            self.V[i] = self.memory[(self.I + i) % MEMORY_SIZE]
        if self.quirks.increment_index:
            self.I = (self.I + self.x + 1) & 0xFFFF
