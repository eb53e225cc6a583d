ROOT_FILE = "main.bean"
ACCOUNTS_FILE = "accounts.bean"
LEDGER_EXTENSION = ".bean"
CONFIG_FILE = ".beancounters.yaml"
DEFAULT_PERIOD_FILE_TEMPLATE = (
    '{{ "%04d" | format(date.year) }}-{{ "%02d" | format(date.month) }}.bean'
)
CLEARED_FLAG = "*"
PENDING_FLAG = "!"
