[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shortly"
version = "0.1.0"
description = "URL shortener web service with accounts, click statistics and an optional Redis redirect cache"
requires-python = ">=3.10"
keywords = ["url-shortener", "short-links", "redirect", "click-analytics", "flask", "jwt", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "flask",
    "redis",
    "pyjwt",
    "bcrypt",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
shortly = "shortly.app:main"

[tool.hatch.build.targets.wheel]
packages = ["shortly"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
