"""
==============================================================================
Block Interpreter Tests
==============================================================================

Tests for a single pass over an output profile.

==============================================================================
"""

import asyncio
from datetime import datetime

from fakes import (
    RecordingAlerts,
    ScriptedBarcodeSource,
    ScriptedManualInput,
    ScriptedQuantityPrompt,
    ScriptedSelectPrompt,
    block,
    make_collaborators,
)
from scanflow.engine import (
    AbortReason,
    AcquisitionMode,
    BarcodeAcquirer,
    BlockInterpreter,
    CancellationGeneration,
    ScanPreferences,
    ScanVariables,
)
from scanflow.profiles import BlockKind


DATE = 1700000000123


def run_pass(blocks, collaborators=None, barcodes=(), quantity_type="number", generation=None):
    collaborators = collaborators or make_collaborators(barcode_source=ScriptedBarcodeSource(barcodes))
    generation = generation or CancellationGeneration()
    token = generation.mint()
    acquirer = BarcodeAcquirer(
        AcquisitionMode.SINGLE,
        collaborators.barcode_source,
        collaborators.manual_input,
        ScanPreferences(),
        "Scan",
    )
    interpreter = BlockInterpreter(collaborators, quantity_type)
    variables = ScanVariables.seed(DATE, "dock-1", "Inventory")
    return asyncio.run(interpreter.execute(blocks, variables, acquirer, token, DATE))


class TestConditionals:
    """Tests for IF/ENDIF branching."""

    PROFILE = [
        block(BlockKind.TEXT, "L1"),
        block(BlockKind.BARCODE, "BARCODE"),
        block(BlockKind.IF, "barcode == '123'"),
        block(BlockKind.TEXT, "MATCH"),
        block(BlockKind.ENDIF),
    ]

    def test_true_condition_keeps_content(self):
        outcome = run_pass(self.PROFILE, barcodes=["123"])

        assert outcome.completed
        assert [b.value for b in outcome.scan.output_blocks] == ["L1", "123", "MATCH"]
        assert outcome.scan.display_value == "L1 123 MATCH"
        assert outcome.scan.text == "123"

    def test_false_condition_skips_to_endif(self):
        outcome = run_pass(self.PROFILE, barcodes=["999"])

        assert [b.value for b in outcome.scan.output_blocks] == ["L1", "999"]
        assert outcome.scan.display_value == "L1 999"

    def test_nested_false_branch_skips_inner_blocks(self):
        blocks = [
            block(BlockKind.IF, "false"),
            block(BlockKind.IF, "true"),
            block(BlockKind.TEXT, "INNER"),
            block(BlockKind.ENDIF),
            block(BlockKind.TEXT, "OUTER"),
            block(BlockKind.ENDIF),
            block(BlockKind.TEXT, "AFTER"),
        ]
        outcome = run_pass(blocks)

        assert [b.value for b in outcome.scan.output_blocks] == ["AFTER"]

    def test_nested_true_branches_drop_markers(self):
        blocks = [
            block(BlockKind.IF, "true"),
            block(BlockKind.IF, "1 < 2"),
            block(BlockKind.TEXT, "INNER"),
            block(BlockKind.ENDIF),
            block(BlockKind.IF, "false"),
            block(BlockKind.TEXT, "SKIPPED"),
            block(BlockKind.ENDIF),
            block(BlockKind.ENDIF),
        ]
        outcome = run_pass(blocks)

        assert [b.value for b in outcome.scan.output_blocks] == ["INNER"]
        assert all(b.type not in (BlockKind.IF, BlockKind.ENDIF) for b in outcome.scan.output_blocks)

    def test_barcode_inside_false_branch_not_acquired(self):
        source = ScriptedBarcodeSource(["123"])
        blocks = [
            block(BlockKind.IF, "false"),
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.ENDIF),
        ]
        outcome = run_pass(blocks, collaborators=make_collaborators(barcode_source=source))

        assert outcome.completed
        assert source.requests == []

    def test_invalid_condition_aborts_with_alert(self):
        alerts = RecordingAlerts()
        blocks = [
            block(BlockKind.IF, "missing == 1"),
            block(BlockKind.TEXT, "A"),
            block(BlockKind.ENDIF),
        ]
        outcome = run_pass(blocks, collaborators=make_collaborators(alerts=alerts))

        assert outcome.abort_reason == AbortReason.INVALID_CONDITION
        assert len(alerts.messages) == 1
        assert "missing" in alerts.messages[0]


class TestBlocks:
    """Tests for individual block kinds."""

    def test_function_block(self):
        blocks = [
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.FUNCTION, "barcode.substr(0, 3) + '-' + barcodes.length"),
        ]
        outcome = run_pass(blocks, barcodes=["9780201633610"])

        assert outcome.scan.output_blocks[1].value == "978-1"

    def test_failing_function_renders_empty(self):
        alerts = RecordingAlerts()
        blocks = [
            block(BlockKind.TEXT, "A"),
            block(BlockKind.FUNCTION, "nope()"),
            block(BlockKind.TEXT, "B"),
        ]
        outcome = run_pass(blocks, collaborators=make_collaborators(alerts=alerts))

        assert outcome.completed
        assert outcome.scan.output_blocks[1].value == ""
        assert outcome.scan.display_value == "A B"
        assert alerts.messages == []

    def test_deeply_nested_function_renders_empty(self):
        blocks = [
            block(BlockKind.FUNCTION, "(" * 1500 + "1" + ")" * 1500),
            block(BlockKind.TEXT, "B"),
        ]
        outcome = run_pass(blocks)

        assert outcome.completed
        assert outcome.scan.display_value == "B"

    def test_device_variables(self):
        blocks = [
            block(BlockKind.VARIABLE, "deviceName"),
            block(BlockKind.VARIABLE, "timestamp"),
            block(BlockKind.VARIABLE, "date"),
            block(BlockKind.VARIABLE, "time"),
            block(BlockKind.VARIABLE, "date_time"),
            block(BlockKind.VARIABLE, "scan_session_name"),
        ]
        outcome = run_pass(blocks)
        moment = datetime.fromtimestamp(DATE / 1000)

        assert [b.value for b in outcome.scan.output_blocks] == [
            "dock-1",
            str(DATE * 1000),
            moment.strftime("%Y-%m-%d"),
            moment.strftime("%H:%M:%S"),
            moment.strftime("%H:%M:%S %Y-%m-%d"),
            "Inventory",
        ]
        assert outcome.scan.date == DATE

    def test_select_option_interpolates_and_splits(self):
        select = ScriptedSelectPrompt(lambda options: options[1])
        blocks = [
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.SELECT_OPTION, "{{ barcode }},Other,{{ device_name }}"),
        ]
        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            select_prompt=select,
        )
        outcome = run_pass(blocks, collaborators=collaborators)

        assert select.calls == [["123", "Other", "dock-1"]]
        assert outcome.scan.output_blocks[1].value == "Other"

    def test_run_and_http_blocks_are_interpolated(self):
        blocks = [
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.HTTP, "https://example.test/items/{{ barcode }}"),
            block(BlockKind.RUN, "echo {{ barcode }}"),
            block(BlockKind.KEY, "enter"),
        ]
        outcome = run_pass(blocks, barcodes=["42"])
        values = [b.value for b in outcome.scan.output_blocks]

        assert values == ["42", "https://example.test/items/42", "echo 42", "enter"]
        assert outcome.scan.display_value == "42"

    def test_barcode_value_is_not_interpolated(self):
        outcome = run_pass([block(BlockKind.BARCODE, "BARCODE")], barcodes=["{{ device_name }}"])

        assert outcome.scan.output_blocks[0].value == "{{ device_name }}"


class TestQuantity:
    """Tests for the quantity prompt."""

    BLOCKS = [
        block(BlockKind.BARCODE, "BARCODE"),
        block(BlockKind.VARIABLE, "quantity", label="How many?"),
    ]

    def test_quantity_recorded(self):
        prompt = ScriptedQuantityPrompt(["4"])
        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            quantity_prompt=prompt,
        )
        outcome = run_pass(self.BLOCKS, collaborators=collaborators)

        assert outcome.scan.quantity == "4"
        assert outcome.scan.display_value == "123 4"
        assert prompt.calls == [("How many?", "number")]

    def test_empty_number_defaults_to_one(self):
        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            quantity_prompt=ScriptedQuantityPrompt([""]),
        )
        outcome = run_pass(self.BLOCKS, collaborators=collaborators)

        assert outcome.scan.quantity == "1"

    def test_empty_text_kept(self):
        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            quantity_prompt=ScriptedQuantityPrompt([""]),
        )
        outcome = run_pass(self.BLOCKS, collaborators=collaborators, quantity_type="text")

        assert outcome.scan.quantity == ""

    def test_cancel_aborts_pass(self):
        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            quantity_prompt=ScriptedQuantityPrompt([None]),
        )
        outcome = run_pass(self.BLOCKS, collaborators=collaborators)

        assert not outcome.completed
        assert outcome.abort_reason == AbortReason.USER_CANCELLED


class TestCancellation:
    """Tests for abort on cancelled or superseded acquisitions."""

    def test_cancelled_barcode_aborts(self):
        outcome = run_pass([block(BlockKind.BARCODE, "BARCODE")], barcodes=[])

        assert outcome.abort_reason == AbortReason.USER_CANCELLED

    def test_superseded_while_waiting(self):
        generation = CancellationGeneration()

        class SupersedingPrompt:
            async def request(self, label, expected_type):
                generation.mint()
                return "5"

        collaborators = make_collaborators(
            barcode_source=ScriptedBarcodeSource(["123"]),
            quantity_prompt=SupersedingPrompt(),
        )
        outcome = run_pass(
            [block(BlockKind.VARIABLE, "quantity"), block(BlockKind.BARCODE, "BARCODE")],
            collaborators=collaborators,
            generation=generation,
        )

        assert outcome.abort_reason == AbortReason.SUPERSEDED
        assert collaborators.barcode_source.requests == []

    def test_manual_input_mode(self):
        collaborators = make_collaborators(manual_input=ScriptedManualInput(["typed"]))
        token = CancellationGeneration().mint()
        acquirer = BarcodeAcquirer(
            AcquisitionMode.MANUAL,
            collaborators.barcode_source,
            collaborators.manual_input,
            ScanPreferences(),
            "Scan",
        )
        outcome = asyncio.run(BlockInterpreter(collaborators).execute(
            [block(BlockKind.BARCODE, "BARCODE")],
            ScanVariables.seed(DATE, "", ""),
            acquirer,
            token,
            DATE,
        ))

        assert outcome.scan.text == "typed"
