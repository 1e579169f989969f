# CHIP8 window:
# We're subclassing pyglet (it handles graphics and keyboard handling) and
# overriding whatever def we need from there. The window owns one Chip8 VM and
# is the only thing that knows about time: CPU and timer ticks are paced from a
# single pyglet.clock callback using accumulators (one for the CPU rate, one
# for the 60Hz timers), so the VM itself never waits on anything.
#----------------------------------------------------------------------------------------------

import numpy as np
import pyglet
from pyglet.window import key

import chip8_vm
from chip8_vm import Chip8Error, WIDTH, HEIGHT, NUM_KEYS


# ---- Configuration ----
SCALE = 10
CPU_HZ = 500
TIMER_HZ = 60
FOREGROUND = (255, 255, 255, 255)
BACKGROUND = (0, 0, 0, 255)
MAX_FRAME_TIME = 0.25  # seconds of emulation caught up per update, at most

# Key mapping - maps physical keyboard keys to CHIP-8 keypad
#   1 2 3 4       1 2 3 C
#   Q W E R  ->   4 5 6 D
#   A S D F       7 8 9 E
#   Z X C V       A 0 B F
KEYMAP = {
    key._1: 0x1, key._2: 0x2, key._3: 0x3, key._4: 0xC,
    key.Q: 0x4, key.W: 0x5, key.E: 0x6, key.R: 0xD,
    key.A: 0x7, key.S: 0x8, key.D: 0x9, key.F: 0xE,
    key.Z: 0xA, key.X: 0x0, key.C: 0xB, key.V: 0xF,
}


class Chip8Window(pyglet.window.Window):
    def __init__(self, vm, rom_name="", scale=SCALE, cpu_hz=CPU_HZ, show_stats=False):
        caption = "CHIP-8 Emulator - %s" % rom_name if rom_name else "CHIP-8 Emulator"
        super().__init__(WIDTH * scale, HEIGHT * scale, caption=caption, resizable=False)

        self.vm = vm
        self.scale = scale
        self.cpu_step = 1.0 / cpu_hz
        self.timer_step = 1.0 / TIMER_HZ
        self.keys = [False] * NUM_KEYS

        # time owed to the CPU and to the timers
        self.cpu_time = 0.0
        self.timer_time = 0.0

        # palette lookup turns the 0/1 framebuffer into RGBA rows
        self._palette = np.array([BACKGROUND, FOREGROUND], dtype=np.uint8)
        self.image = pyglet.image.ImageData(
            WIDTH * scale,
            HEIGHT * scale,
            'RGBA',
            self._render()
        )

        # ---- Performance Counters ----
        self.show_stats = show_stats
        self._fps_counter = 0
        self._cps_counter = 0
        self.fps_label = pyglet.text.Label(
            "FPS: 0",
            font_size=12,
            x=5,
            y=self.height - 15,
            anchor_x='left',
            anchor_y='center',
            color=(255, 0, 0, 255)
        )
        self.cps_label = pyglet.text.Label(
            "Cycles/s: 0",
            font_size=12,
            x=5,
            y=self.height - 30,
            anchor_x='left',
            anchor_y='center',
            color=(255, 0, 0, 255)
        )

        pyglet.clock.schedule_interval(self.update, 1.0 / TIMER_HZ)
        if show_stats:
            pyglet.clock.schedule_interval(self._update_bench, 1.0)

    # ---- Emulation ----
    def update(self, dt):
        if self.vm.halted:
            return
        dt = min(dt, MAX_FRAME_TIME)
        self.timer_time += dt
        self.cpu_time += dt

        while self.timer_time >= self.timer_step:
            self.vm.tick_timers()
            self.timer_time -= self.timer_step

        try:
            while self.cpu_time >= self.cpu_step:
                self.vm.set_keys(self.keys)
                self.vm.tick_cpu()
                self.cpu_time -= self.cpu_step
                self._cps_counter += 1
        except Chip8Error as e:
            print("Emulation error:", e)
            self.close()
            return

        if self.vm.should_draw:
            self.image.set_data('RGBA', WIDTH * self.scale * 4, self._render())
            self.vm.clear_redraw()

    def _render(self):
        pixels = np.frombuffer(self.vm.framebuffer, dtype=np.uint8).reshape(HEIGHT, WIDTH)
        rgba = self._palette[pixels]
        if self.scale != 1:
            rgba = np.repeat(np.repeat(rgba, self.scale, axis=0), self.scale, axis=1)
        # pyglet rows go bottom to top
        return np.ascontiguousarray(rgba[::-1]).tobytes()

    def _update_bench(self, dt):
        self.fps_label.text = f"FPS: {self._fps_counter / dt:.1f}"
        self.cps_label.text = f"Cycles/s: {self._cps_counter / dt:.0f}"
        self._fps_counter = 0
        self._cps_counter = 0

    # ---- Drawing ----
    def on_draw(self):
        self.clear()
        self.image.blit(0, 0)
        if self.show_stats:
            self.fps_label.draw()
            self.cps_label.draw()
        self._fps_counter += 1

    # ---- Input ----
    def on_key_press(self, symbol, modifiers):
        #@Override
        if symbol == key.ESCAPE:
            self.close()
        elif symbol == key.F1:
            chip8_vm.set_logging(not chip8_vm.logsOn)
            print("logsOn:", chip8_vm.logsOn)
        elif symbol in KEYMAP:
            self.keys[KEYMAP[symbol]] = True

    def on_key_release(self, symbol, modifiers):
        #@Override
        if symbol in KEYMAP:
            self.keys[KEYMAP[symbol]] = False

    def on_close(self):
        pyglet.clock.unschedule(self.update)
        pyglet.clock.unschedule(self._update_bench)
        super().on_close()
