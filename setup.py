from setuptools import setup


setup(
    name="sheet-tracker",
    version="0.3.0",
    description="Rollout progress dashboards from a shared spreadsheet CSV export",
    packages=["sheet_tracker"],
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    entry_points={
        "console_scripts": [
            "sheet-tracker=sheet_tracker.cli:main",
        ]
    },
)
