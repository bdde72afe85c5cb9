"""Setup configuration for node-life-support package."""

from setuptools import setup, find_packages

setup(
    name="node-life-support",
    version="1.0.0",
    description="Keeps selected Kubernetes nodes Ready by renewing their heartbeat from outside the node",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="node-life-support maintainers",
    python_requires=">=3.9",
    packages=find_packages(where=".", include=["node_life_support*"]),
    package_dir={"": "."},
    install_requires=[
        "kubernetes>=29.0.0",
        "urllib3>=1.26",
        "python-dotenv==1.0.1",
        "PyYAML==6.0.2",
        "jsonschema==4.23.0",
        "schedule==1.2.0",
        "prometheus-client==0.20.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "node-life-support=node_life_support.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
