"""CHIP-8 Interactive Demo.

A Gradio web interface for running and inspecting the CHIP-8 interpreter.

Usage:
    cd /path/to/chip8-core
    python demo/gradio_app.py

Features:
    - Load a built-in example, a hex listing or an uploaded ROM
    - Run a chosen number of steps at a time
    - Press keys on the hex keypad (answers Fx0A key waits)
    - See the display, registers and the instruction trace
"""

import random
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from chip8_core import Chip8, Chip8Error
from chip8_core.keymap import KEY_LAYOUT, host_key
from chip8_core.rom import load_rom, parse_hex


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Font Digits": """6000    # V0 = digit
6100    # V1 = x
6201    # V2 = y
F029    # I = glyph(V0)
D125    # draw 4x5 glyph
7001    # next digit
7104    # next column
3010    # done after F
1206
1212    # idle""",

    "Key Echo": """00E0    # clear
F00A    # V0 = next key
00E0
F029    # I = glyph(V0)
611C
620D
D125    # draw the key centred
1202    # wait again""",

    "Random Dots": """A20A    # I = dot sprite
C03F    # V0 = random x
C11F    # V1 = random y
D011    # toggle one pixel
1202
80      # sprite: single pixel""",

    "Custom": ""
}


# =============================================================================
# Execution Functions
# =============================================================================

def render_outputs(cpu: Chip8, message: str = "") -> tuple:
    """Format screen, registers and trace text for a machine.

    Returns:
        Tuple of (cpu, screen_text, registers_text, trace_text, status_text)
    """
    if cpu is None:
        return None, "", "", "", message or "No program loaded"

    screen = cpu.screen_text(on="█", off=" ")

    summary = cpu.get_summary()
    reg_lines = [
        "REGISTERS",
        "=" * 30,
    ]
    for reg, value in summary["registers"].items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg}: {value:#04x} ({value:>3}){marker}")
    reg_lines.append("")
    reg_lines.append(f"  PC: {summary['pc']:#05x}")
    reg_lines.append(f"  I:  {summary['i']:#05x}")
    reg_lines.append(f"  SP: {summary['sp']}")
    reg_lines.append(f"  DT: {summary['delay_timer']}  ST: {summary['sound_timer']}")
    registers_text = "\n".join(reg_lines)

    trace_lines = []
    for entry in cpu.trace[-50:]:
        line = f"{entry.address:03X}: {entry.instruction.raw:04X}  {entry.instruction.mnemonic()}"
        if entry.error:
            line += f"  ! {entry.error}"
        trace_lines.append(line)
    trace_text = "\n".join(trace_lines)

    status = [f"Cycles: {summary['cycles']}"]
    if summary["awaiting_key"]:
        status.append("Waiting for a key press")
    if summary["last_error"]:
        status.append(f"Last error: {summary['last_error']}")
    if message:
        status.append(message)

    return cpu, screen, registers_text, trace_text, "\n".join(status)


def load_program(example_name: str, program: str, rom_file, seed: str) -> tuple:
    """Create a fresh machine from an uploaded ROM or the hex listing."""
    try:
        if rom_file:
            rom = load_rom(rom_file)
            source = Path(rom_file).name
        else:
            rom = parse_hex(program)
            source = example_name
        rng = random.Random(int(seed)) if seed.strip() else None
        cpu = Chip8(rom, rng=rng, trace=True)
    except (OSError, ValueError) as e:
        return render_outputs(None, f"Error: {e}")

    return render_outputs(cpu, f"Loaded {source} ({len(rom)} bytes)")


def run_steps(cpu: Chip8, steps: int) -> tuple:
    """Step the machine; stops early on a key wait."""
    if cpu is None:
        return render_outputs(None)
    try:
        performed = cpu.run(int(steps))
    except Chip8Error as e:
        return render_outputs(cpu, f"Execution error: {e}")
    return render_outputs(cpu, f"Ran {performed} steps")


def press_key(cpu: Chip8, key: int, steps: int) -> tuple:
    """Hold a key down while stepping, then release it."""
    if cpu is None:
        return render_outputs(None)
    cpu.key_down(key)
    try:
        performed = cpu.run(int(steps))
    except Chip8Error as e:
        return render_outputs(cpu, f"Execution error: {e}")
    finally:
        cpu.key_up(key)
    return render_outputs(cpu, f"Key {key:X} held for {performed} steps")


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="CHIP-8 Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # CHIP-8 Interpreter

        Fetch, decode and execute CHIP-8 programs one opcode per step.
        Load a program, run it for a number of steps, and use the keypad
        to answer key waits.
        """)

        cpu_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Font Digits",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Font Digits"],
                    label="Hex Listing",
                    lines=12,
                    placeholder="Enter opcodes, e.g. 6005 F029 ..."
                )

                rom_upload = gr.File(label="Or upload a ROM", type="filepath")

                with gr.Row():
                    seed_input = gr.Textbox(value="", label="RND Seed (optional)")
                    steps_slider = gr.Slider(
                        minimum=1,
                        maximum=5000,
                        value=200,
                        step=1,
                        label="Steps per Run"
                    )

                with gr.Row():
                    load_button = gr.Button("Load", variant="primary")
                    run_button = gr.Button("Run")

                gr.Markdown("### Keypad")
                key_buttons = []
                for layout_row in KEY_LAYOUT:
                    with gr.Row():
                        for key in layout_row:
                            button = gr.Button(f"{key:X} ({host_key(key)})", size="sm")
                            key_buttons.append((key, button))

            with gr.Column(scale=3):
                screen_output = gr.Textbox(
                    label="Display",
                    lines=32,
                    max_lines=32,
                    interactive=False
                )
                status_output = gr.Textbox(label="Status", lines=3, interactive=False)
                with gr.Row():
                    registers_output = gr.Textbox(
                        label="Registers",
                        lines=24,
                        interactive=False
                    )
                    trace_output = gr.Textbox(
                        label="Recent Instructions",
                        lines=24,
                        interactive=False
                    )

        outputs = [cpu_state, screen_output, registers_output, trace_output, status_output]

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        load_button.click(
            fn=load_program,
            inputs=[example_dropdown, program_input, rom_upload, seed_input],
            outputs=outputs
        )

        run_button.click(
            fn=run_steps,
            inputs=[cpu_state, steps_slider],
            outputs=outputs
        )

        for key, button in key_buttons:
            button.click(
                fn=lambda cpu, steps, key=key: press_key(cpu, key, steps),
                inputs=[cpu_state, steps_slider],
                outputs=outputs
            )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
