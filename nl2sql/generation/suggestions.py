"""Example questions offered to users who don't know where to start."""

from typing import List


EXAMPLE_QUERIES = [
    "Show me all employees in the IT department",
    "How many employees do we have in each department?",
    "List all employees hired in the last year",
    "What is the average salary by department?",
    "Show me the top 10 highest paid employees",
    "How many employees are there in each city?",
    "List all employees who are managers",
    "Show me all departments and their employee count",
    "Find all transactions from last month",
    "What are our top selling products?",
    "Show me customer information with their recent orders",
    "List all projects with their assigned employees",
    "What is the total revenue by product category?",
    "Show me attendance records for employees in the Finance department",
    "Find all overdue tasks and who they're assigned to",
]


def get_example_queries(limit: int = 0) -> List[str]:
    """Example questions, optionally only the first ``limit``."""
    if limit > 0:
        return EXAMPLE_QUERIES[:limit]
    return list(EXAMPLE_QUERIES)
