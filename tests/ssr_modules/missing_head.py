exports = {"render": lambda page: {"body": '<div id="ssr"></div>'}}
