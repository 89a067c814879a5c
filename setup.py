from setuptools import setup, find_packages

setup(
    name="repoindex",
    version="0.1.0",
    description="Generate a static HTML index page listing git repositories and their last commit",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(),
    install_requires=[
        "mcp>=1.0.0,<2",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "repoindex=repoindex_package.repoindex:main",
            "repoindex-mcp=repoindex_package.mcp_server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Version Control :: Git",
    ],
)
