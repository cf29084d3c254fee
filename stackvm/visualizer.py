import datetime
import json
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import pygame

from .debug import format_error
from .interpreter import Interpreter
from .value_utils import format_value
from .vm_errors import ExecutionError
from .vm_events import VMStateSnapshot

# Constants
SCREEN_WIDTH = 1200
SCREEN_HEIGHT = 760
BACKGROUND_COLOR = (240, 240, 240)
FONT_COLOR = (10, 10, 10)
HIGHLIGHT_COLOR = (255, 255, 0)
PC_COLOR = (200, 255, 200)
CHANGE_COLOR = (255, 220, 200)
ERROR_COLOR = (200, 40, 40)
FONT_SIZE = 18
LINE_HEIGHT = 22
MARGIN = 20


class VMVisualizer:
    """Step-through pygame view of an interpreter: instructions, stack, variables, output."""

    def __init__(self, interpreter: Interpreter):
        self.vm = interpreter
        pygame.init()
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        pygame.display.set_caption("Stack VM Visualizer")
        self.font = pygame.font.SysFont("monospace", FONT_SIZE)
        self.clock = pygame.time.Clock()
        self.running = True
        self.paused = True
        self.error: Optional[ExecutionError] = None
        self.prev_variables: Dict[str, float] = {}
        self.message = "SPACE/P: run/pause, N/Right: step, R: reset, L: export trace, Q: quit."
        self.trace_log: List[Dict[str, Any]] = []
        self._latest_snapshot: Optional[VMStateSnapshot] = None
        # Keep a frozen copy of instructions for resetting
        self._instructions = list(interpreter.instructions)

    def _draw_text(self, text: str, x: int, y: int, color=FONT_COLOR, background=None):
        surface = self.font.render(text, True, color, background)
        self.screen.blit(surface, (x, y))

    def _draw_section(
        self,
        title: str,
        data: List[str],
        x: int,
        y: int,
        width: int,
        height: int,
        highlight_index: int = -1,
        secondary_highlights: Set[int] | None = None,
        secondary_color=CHANGE_COLOR,
    ) -> None:
        pygame.draw.rect(self.screen, (220, 220, 220), (x, y, width, height), border_radius=5)
        pygame.draw.rect(self.screen, (180, 180, 180), (x, y, width, 30), border_radius=5)
        self._draw_text(title, x + 10, y + 5, color=(50, 50, 50))

        start_y = y + 40
        for i, line in enumerate(data):
            line_y = start_y + i * LINE_HEIGHT
            if line_y > y + height - LINE_HEIGHT:
                self._draw_text("...", x + 10, line_y)
                break

            bg = None
            if i == highlight_index:
                bg = PC_COLOR
            elif secondary_highlights and i in secondary_highlights:
                bg = secondary_color
            self._draw_text(line, x + 10, line_y, background=bg)

    def _prepare_instruction_display(self) -> Tuple[List[str], int]:
        lines = [f"{i:03d} L{inst.line:<4} {inst}" for i, inst in enumerate(self.vm.instructions)]
        highlight_idx = self.vm.pc if self.vm.pc < len(lines) else -1
        return lines, highlight_idx

    def _prepare_stack_display(self, stack) -> List[str]:
        # Top of stack first.
        lines = [f"{depth}: {format_value(value)}" for depth, value in enumerate(reversed(stack))]
        return lines or ["<empty>"]

    def _prepare_variable_display(self, variables: Mapping[str, float]) -> Tuple[List[str], Set[int]]:
        lines: List[str] = []
        changed: Set[int] = set()
        for idx, name in enumerate(sorted(variables)):
            value = variables[name]
            lines.append(f"{name} = {format_value(value)}")
            if self.prev_variables.get(name) != value:
                changed.add(idx)
        return lines, changed

    def _prepare_data(self):
        snapshot = self.vm.snapshot_state()
        self._latest_snapshot = snapshot
        instructions, highlight_idx = self._prepare_instruction_display()
        stack = self._prepare_stack_display(snapshot.stack)
        variables, changed = self._prepare_variable_display(snapshot.variables)
        output = [format_value(value) for value in snapshot.output] or ["<none>"]
        return instructions, highlight_idx, stack, variables, changed, output

    def _draw_ui(self):
        self.screen.fill(BACKGROUND_COLOR)
        instructions, highlight_idx, stack, variables, changed, output = self._prepare_data()

        self._draw_section(
            "Instructions",
            instructions,
            MARGIN,
            MARGIN,
            560,
            SCREEN_HEIGHT - 3 * MARGIN - LINE_HEIGHT,
            highlight_index=highlight_idx,
        )

        right_x = 600
        right_width = SCREEN_WIDTH - right_x - MARGIN
        self._draw_section("Operand Stack (top first)", stack, right_x, MARGIN, right_width, 240)
        self._draw_section(
            "Variables",
            variables or ["<none>"],
            right_x,
            MARGIN + 260,
            right_width,
            200,
            secondary_highlights=changed,
        )
        output_y = MARGIN + 480
        self._draw_section(
            "Output",
            output,
            right_x,
            output_y,
            right_width,
            SCREEN_HEIGHT - output_y - 2 * MARGIN - LINE_HEIGHT,
        )

        msg_y = SCREEN_HEIGHT - MARGIN - LINE_HEIGHT
        color = ERROR_COLOR if self.error is not None else (100, 100, 100)
        self._draw_text(self.message, MARGIN, msg_y, color=color)
        steps = self._latest_snapshot.steps if self._latest_snapshot is not None else 0
        self._draw_text(f"steps: {steps}", SCREEN_WIDTH - 200, msg_y, color=(100, 100, 100))

        pygame.display.flip()
        if self._latest_snapshot is not None:
            self.prev_variables = dict(self._latest_snapshot.variables)

    def _handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_q:
                    self.running = False
                elif event.key in (pygame.K_n, pygame.K_RIGHT):
                    self.paused = True
                    self._step_once()
                elif event.key in (pygame.K_SPACE, pygame.K_p):
                    self.paused = not self.paused
                    self.message = "Running..." if not self.paused else "Paused."
                elif event.key == pygame.K_l:
                    self._export_trace()
                elif event.key == pygame.K_r:
                    self._reset_vm()

    def run(self):
        while self.running:
            self._handle_events()

            if not self.paused:
                self._step_once()

            self._draw_ui()
            self.clock.tick(10)  # Limit frame rate

        pygame.quit()

    def _step_once(self) -> bool:
        if self.error is not None:
            self.paused = True
            return True
        if self.vm.halted:
            self.paused = True
            self.message = "Program already complete."
            return True

        before_pc = self.vm.pc
        instruction = self.vm.instructions[before_pc]
        try:
            self.vm.step()
        except ExecutionError as exc:
            self.error = exc
            self.paused = True
            self.message = format_error(exc)
            return True
        self.trace_log.append(
            {
                "step": len(self.trace_log),
                "pc": before_pc,
                "line": instruction.line,
                "instruction": str(instruction),
                "stack": list(self.vm.stack),
                "variables": dict(self.vm.variables),
                "output": list(self.vm.output),
            }
        )
        if self.vm.halted:
            self.paused = True
            self.message = "Execution halted."
            return True
        return False

    def _export_trace(self) -> None:
        if not self.trace_log:
            self.message = "Trace log is empty; nothing exported."
            return
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"vm_trace_{timestamp}.jsonl"
        try:
            with open(filename, "w", encoding="utf-8") as f:
                for entry in self.trace_log:
                    f.write(json.dumps(entry, ensure_ascii=False))
                    f.write("\n")
            self.message = f"Trace exported to {filename}"
        except OSError as exc:
            self.message = f"Failed to export trace: {exc}"

    def _reset_vm(self) -> None:
        self.vm.reset()
        self.vm.load(self._instructions)
        self.paused = True
        self.error = None
        self.prev_variables = {}
        self.trace_log.clear()
        self._latest_snapshot = None
        self.message = "VM reset."


__all__ = ["VMVisualizer"]
