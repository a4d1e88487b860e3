"""Category lists and chart palette shared by the entry form and reports."""

EXPENSE_CATEGORIES = [
    "Housing",
    "Food & Dining",
    "Transportation",
    "Utilities",
    "Insurance",
    "Healthcare",
    "Education",
    "Business Expense",
    "Tax Payment",
    "Investment Deposit",
    "Ma'aser",
    "Savings",
    "Other",
]

INCOME_CATEGORIES = [
    "Salary",
    "Kollel",
    "Family Support",
    "Child Allowance",
    "Business Income",
    "Dollar Income",
    "Gift Maaser",
    "Investments",
    "Other",
]

# Categories a Ma'aser payment is expected to be filed under
MAASER_CATEGORIES = {"Ma'aser", "Gift Maaser"}

COLORS = [
    "#0088FE",
    "#00C49F",
    "#FFBB28",
    "#FF8042",
    "#8884d8",
    "#82ca9d",
    "#ffc658",
    "#8dd1e1",
    "#a4de6c",
    "#d0ed57",
]
