# WorldGraph Utils module

# Note: no eager imports here; format_detection depends on the translation
# package, which itself reads settings from this package.
