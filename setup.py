from setuptools import setup, find_packages

setup(
    name="agent-flow",
    version="0.1.0",
    description="Local workflow engine for shell commands and agent CLI steps",
    author="Agent Flow Team",
    packages=find_packages(include=["agent_flow", "agent_flow.*", "config", "config.*"]),
    install_requires=[
        "pydantic>=2.0.0",
        "psutil>=5.9.0",
        "PyYAML>=6.0",
        "click>=8.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "agent-flow=agent_flow.cli:main",
        ],
    },
    python_requires=">=3.11",
)
