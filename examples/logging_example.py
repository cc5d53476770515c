"""Demonstrates how to enable and configure logging in onerule.

onerule logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, onerule logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``DIAGNOSTIC`` level
  (numeric value 25, between INFO and WARNING) surfaces the verbose attribute
  ranking of ``one_r``.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Data-quality issues (rows with missing values removed, unused levels dropped)
  are logged at WARNING and also recorded on the returned model.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

import polars as pl

from onerule import enable_logging, eval_model, one_r, optbin_table, predict

weather = pl.DataFrame({
    "outlook": ["sunny", "sunny", "overcast", "rainy", "rainy", "rainy", "overcast", "sunny", "sunny", "rainy"],
    "temperature": [85.0, 80.0, 83.0, 70.0, 68.0, 65.0, 64.0, 72.0, 69.0, None],
    "windy": [False, True, False, False, False, True, True, False, False, False],
    "play": ["no", "no", "yes", "yes", "yes", "no", "yes", "no", "yes", "yes"],
})

# Enable logging at DIAGNOSTIC level (and above) with full log format for better visibility of log details
with enable_logging(
    level="DIAGNOSTIC",
    log_format="full",
):
    # The row with a missing temperature is removed and logged as a warning
    table = optbin_table(weather, method="infogain")

    # The attribute ranking is logged at DIAGNOSTIC level
    model = one_r(table, verbose=True)

    # The evaluation summary is logged at INFO level, below the chosen threshold
    result = eval_model(predict(model, table.data), table.data)

print(f"\nChosen attribute: {model.feature}")
print(f"Rules: {model.rules}")
print(f"Issues: {[issue.kind for issue in model.issues]}")
print(result.to_frame())

# Logging is disabled again; this call produces no log output
one_r(weather.drop_nulls())
