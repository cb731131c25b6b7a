from __future__ import annotations

# Per-construct command identifiers offered through code lenses.
EXECUTE_COMMAND_ID = "conduit.function.execute"
REGISTER_SERVICE_COMMAND_ID = "conduit.service.registerService"
RUN_LEGACY_TESTS_COMMAND_ID = "conduit.service.runLegacyTests"
RUN_TESTS_COMMAND_ID = "conduit.testable.runTests"

EXECUTE_COMMAND_TITLE = "Execute"
REGISTER_SERVICE_COMMAND_TITLE = "Register service"
RUN_LEGACY_TESTS_COMMAND_TITLE = "Run legacy tests"
RUN_TESTS_COMMAND_TITLE = "Run tests"

# Workspace commands understood by the language server itself.
EXECUTE_WORKSPACE_COMMAND = "conduit.execute"
TDS_REQUEST_WORKSPACE_COMMAND = "conduit.tdsRequest"
CANCEL_REQUEST_WORKSPACE_COMMAND = "conduit.cancelRequest"
