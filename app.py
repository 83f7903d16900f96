import logging
from functools import partial

import gradio as gr

from dpp_csv_mapper.handlers import (
    TABLE_HEADERS,
    approve_all_handler,
    generate_records_handler,
    load_config_handler,
    load_csv_handler,
    load_schemas_handler,
    refresh_conflicts_handler,
    save_config_handler,
    set_target_handler,
    suggestions_handler,
)
from dpp_csv_mapper.io_utils import SchemaStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

schema_store = SchemaStore()

# --- UI Definition ---
with gr.Blocks(title="DPP CSV Mapper") as demo:
    gr.Markdown("# DPP CSV Mapper")
    gr.Markdown("Map spreadsheet columns onto a Digital Product Passport schema and download the generated records.")

    # State
    catalog_state = gr.State()
    rules_state = gr.State()
    headers_state = gr.State(value=[])
    rows_state = gr.State(value=[])

    with gr.Row():
        # Left Panel: Inputs
        with gr.Column(scale=1):
            gr.Markdown("### 1. Schemas")
            schema_files = gr.File(label="Resolved Schema Files", file_types=[".json"], file_count="multiple")
            sectors_input = gr.Dropdown(
                label="Sectors",
                choices=schema_store.available(),
                value=[],
                multiselect=True,
                allow_custom_value=True,
                interactive=True,
                info="Used for @context and, without uploaded files, to load schemas from the schema directory.",
            )
            load_schemas_btn = gr.Button("Load Schemas")
            schema_status = gr.Textbox(label="Schema Status", interactive=False)

            gr.Markdown("### 2. CSV")
            csv_file = gr.File(label="Upload CSV File", file_types=[".csv"])
            csv_status = gr.Textbox(label="Status", interactive=False)

            gr.Markdown("### 3. Mapping Configuration")
            config_file = gr.File(label="Load Mapping Configuration", file_types=[".json"])
            config_filename = gr.Textbox(label="Configuration Filename (optional)", placeholder="mapping_config")
            save_config_btn = gr.Button("Save Configuration")
            config_download = gr.File(label="Download Configuration")

        # Right Panel: Mapping & Output
        with gr.Column(scale=2):
            gr.Markdown("### 4. Field Mapping")
            gr.Markdown("Edit target paths, tick Approved, or approve an empty target to skip a column.")
            mapping_table = gr.Dataframe(
                headers=TABLE_HEADERS,
                datatype=["str", "str", "str", "bool", "str"],
                col_count=(5, "fixed"),
                interactive=True,
                label="Field Mapping",
            )
            with gr.Row():
                edit_header = gr.Dropdown(label="Column", choices=[], interactive=True)
                path_filter = gr.Textbox(label="Filter", placeholder="e.g. material")
                path_choice = gr.Dropdown(label="Target Path", choices=[], allow_custom_value=True, interactive=True)
            with gr.Row():
                set_target_btn = gr.Button("Set Target")
                refresh_btn = gr.Button("Check Conflicts")
                approve_all_btn = gr.Button("Approve All")
            completeness = gr.Textbox(label="Required Fields", interactive=False)

            gr.Markdown("### 5. Generate")
            output_filename = gr.Textbox(label="Output Filename (optional)", placeholder="dpp_records")
            generate_btn = gr.Button("Generate Records", variant="primary")
            output_status = gr.Textbox(label="Output Status", interactive=False)
            download_output = gr.File(label="Download Result")
            records_preview = gr.JSON(label="Preview (first 3 records)")

    load_schemas_btn.click(
        fn=partial(load_schemas_handler, store=schema_store),
        inputs=[schema_files, sectors_input],
        outputs=[catalog_state, rules_state, schema_status],
    )

    csv_file.upload(
        fn=load_csv_handler,
        inputs=[csv_file, catalog_state],
        outputs=[headers_state, rows_state, mapping_table, csv_status],
    )

    headers_state.change(
        fn=lambda headers: gr.update(choices=headers or [], value=None),
        inputs=[headers_state],
        outputs=[edit_header],
    )

    for trigger in (edit_header.change, path_filter.change):
        trigger(
            fn=suggestions_handler,
            inputs=[mapping_table, catalog_state, rows_state, edit_header, path_filter],
            outputs=[path_choice],
        )

    set_target_btn.click(
        fn=set_target_handler,
        inputs=[mapping_table, catalog_state, rows_state, rules_state, edit_header, path_choice],
        outputs=[mapping_table, completeness],
    )

    refresh_btn.click(
        fn=refresh_conflicts_handler,
        inputs=[mapping_table, catalog_state, rows_state, rules_state],
        outputs=[mapping_table, completeness],
    )

    approve_all_btn.click(
        fn=approve_all_handler,
        inputs=[mapping_table, catalog_state, rows_state],
        outputs=[mapping_table, csv_status],
    )

    config_file.upload(
        fn=load_config_handler,
        inputs=[config_file, headers_state, rows_state, catalog_state],
        outputs=[mapping_table, csv_status],
    )

    save_config_btn.click(
        fn=save_config_handler,
        inputs=[mapping_table, config_filename],
        outputs=[config_download, csv_status],
    )

    generate_btn.click(
        fn=generate_records_handler,
        inputs=[mapping_table, rows_state, sectors_input, catalog_state, output_filename],
        outputs=[download_output, output_status, records_preview],
    )

if __name__ == "__main__":
    demo.launch()
