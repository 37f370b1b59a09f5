from setuptools import setup, find_packages

setup(
    name="salesforce-mcp",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "mcp>=1.10.0,<2",
        "simple-salesforce>=1.12.5",
        "keyring>=24.3.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "salesforce-mcp=salesforce_mcp.__main__:main",
        ],
    },
    python_requires=">=3.9",
)
