from __future__ import annotations

import base64
import io
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .runtime import AnalyticRuntime, RequestTemplate

CSV_DATA_VAR = "csv_data_js"
SELECTED_COLUMN_VAR = "selected_column_js"
TABLE_CLASSES = "table table-striped"

CATALOG: dict[str, RequestTemplate] = {}


def register(name: str):
    def _wrap(func: RequestTemplate) -> RequestTemplate:
        CATALOG[name] = func
        return func

    return _wrap


def _frame_or_none(rt: AnalyticRuntime) -> Any:
    return rt.dataset.get()


def _no_dataset(**fields: Any) -> dict[str, Any]:
    return {**fields, "error": "No dataset loaded."}


def _numeric_frame(df: Any) -> Any:
    return df.select_dtypes(include=["number"])


def _fig_to_base64(fig: Any) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=110, bbox_inches="tight")
    return base64.b64encode(buf.getvalue()).decode("ascii")


@register("parse_csv")
def parse_csv_and_summarize(rt: AnalyticRuntime) -> dict[str, Any]:
    pd = rt.require("pandas")
    csv_string = rt.pop_global(CSV_DATA_VAR)

    # a failed parse must not leave the previous file's frame resident
    rt.dataset.clear()
    if not isinstance(csv_string, str):
        return {
            "message": "Error parsing CSV in Python.",
            "head_html": None,
            "error": f"{CSV_DATA_VAR} is not bound to text",
            "success": False,
        }

    try:
        df = pd.read_csv(io.StringIO(csv_string))
    except Exception as exc:
        return {"message": "Error parsing CSV in Python.", "head_html": None, "error": str(exc), "success": False}

    if df.shape[0] == 0:
        return {
            "message": "Error parsing CSV in Python.",
            "head_html": None,
            "error": "CSV parsed but contains no data rows.",
            "success": False,
        }

    rt.dataset.set(df)
    rows, cols = df.shape
    head_html = df.head(rt.config.preview_rows).to_html(classes=TABLE_CLASSES, border=0, justify="left")
    return {
        "message": f"DataFrame created successfully. Shape: {rows} rows, {cols} columns.",
        "head_html": head_html,
        "error": None,
        "success": True,
        "shape": [int(rows), int(cols)],
    }


@register("dataset_info")
def dataset_info(rt: AnalyticRuntime) -> dict[str, Any]:
    df = _frame_or_none(rt)
    if df is None:
        return _no_dataset(info_text=None)

    buffer = io.StringIO()
    df.info(buf=buffer)
    return {"info_text": buffer.getvalue(), "error": None}


@register("describe")
def describe(rt: AnalyticRuntime) -> dict[str, Any]:
    df = _frame_or_none(rt)
    if df is None:
        return _no_dataset(describe_html=None)

    num = _numeric_frame(df)
    if num.shape[1] == 0:
        return {"describe_html": None, "error": "No numeric columns to describe."}
    return {"describe_html": num.describe().to_html(classes=TABLE_CLASSES, border=0, justify="left"), "error": None}


@register("numeric_columns")
def numeric_columns(rt: AnalyticRuntime) -> dict[str, Any]:
    df = _frame_or_none(rt)
    if df is None:
        return _no_dataset(columns=None)
    return {"columns": [str(c) for c in _numeric_frame(df).columns], "error": None}


@register("histogram")
def histogram(rt: AnalyticRuntime) -> dict[str, Any]:
    pd = rt.require("pandas")
    df = _frame_or_none(rt)
    if df is None:
        return _no_dataset(message=None, image_base64=None)

    column = rt.get_global(SELECTED_COLUMN_VAR)
    if not column:
        return {"message": None, "image_base64": None, "error": "No column selected."}

    lookup = {str(c): c for c in df.columns}
    if column not in lookup:
        return {"message": None, "image_base64": None, "error": f"Column '{column}' not found in the dataset."}

    series = df[lookup[column]]
    if pd.api.types.is_bool_dtype(series) or not pd.api.types.is_numeric_dtype(series):
        return {"message": None, "image_base64": None, "error": f"Column '{column}' is not numeric."}

    np = rt.require("numpy")
    # read_csv accepts inf; matplotlib cannot bin it
    values = series.replace([np.inf, -np.inf], np.nan).dropna()
    if values.empty:
        return {"message": None, "image_base64": None, "error": f"Column '{column}' has no values to plot."}

    if not rt.has_extension("matplotlib"):
        return {"message": None, "image_base64": None, "error": "Plotting extension (matplotlib) is not loaded."}
    plt = rt.require("matplotlib.pyplot")

    fig, ax = plt.subplots(figsize=(8, 4.5))
    try:
        ax.hist(values.values, bins=rt.config.histogram_bins)
        ax.set_title(f"Histogram: {column}")
        ax.set_xlabel(column)
        ax.set_ylabel("count")
        image = _fig_to_base64(fig)
    finally:
        plt.close(fig)

    return {"message": f"Histogram for '{column}' generated.", "image_base64": image, "error": None}
