"""File persistence shared by all servers."""
